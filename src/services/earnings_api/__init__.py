# src/services/earnings_api/__init__.py
"""
HTTP API начислений и выплат водителей, подарочных карт,
баллов лояльности и истории поездок.
"""
