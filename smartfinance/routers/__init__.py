"""
SmartFinance API Routers.

All routers are imported here for easy access.
"""

from smartfinance.routers.auth import router as auth_router
from smartfinance.routers.devices import router as devices_router
from smartfinance.routers.protected import router as protected_router

__all__ = [
    "auth_router",
    "devices_router",
    "protected_router",
]
