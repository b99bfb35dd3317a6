"""User services."""

from smartfinance.services.user.user_service import UserService

__all__ = ["UserService"]
