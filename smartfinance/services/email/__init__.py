"""Email services."""

from smartfinance.services.email.email_service import EmailService

__all__ = ["EmailService"]
