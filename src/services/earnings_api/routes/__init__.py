# src/services/earnings_api/routes/__init__.py
"""
Роутеры API начислений и выплат.
"""

from src.services.earnings_api.routes.admin import router as admin_router
from src.services.earnings_api.routes.earnings import router as earnings_router
from src.services.earnings_api.routes.gift_cards import router as gift_cards_router
from src.services.earnings_api.routes.loyalty import router as loyalty_router
from src.services.earnings_api.routes.rides import router as rides_router

ROUTERS = (
    earnings_router,
    gift_cards_router,
    loyalty_router,
    rides_router,
    admin_router,
)

__all__ = ["ROUTERS"]
