"""
Authentication module - JWT token issuance and verification.
"""

from common.auth.jwt_auth import (
    PASSWORD_RESET_PURPOSE,
    InvalidTokenError,
    TokenClaims,
    TokenService,
)

__all__ = [
    "PASSWORD_RESET_PURPOSE",
    "InvalidTokenError",
    "TokenClaims",
    "TokenService",
]
