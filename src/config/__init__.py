# src/config/__init__.py
"""
Конфигурация сервиса начислений и выплат.
"""

from src.config.loader import Settings, get_project_root, get_settings, settings

__all__ = ["Settings", "get_project_root", "get_settings", "settings"]
