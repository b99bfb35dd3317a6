"""
SmartFinance Middleware.

All middleware components are imported here.
"""

from smartfinance.middleware.auth import AuthContext, AuthMiddleware, AuthState

__all__ = [
    "AuthContext",
    "AuthMiddleware",
    "AuthState",
]
