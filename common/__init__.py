"""
Common library for reusable infrastructure components.

- database: Async MongoDB connection with Motor
- auth: JWT token issuance and verification
- tasks: Fire-and-forget background tasks
- utils: Success responses, exceptions, password hashing and validation
- config: Base settings class
"""

from common.database import MongoDB
from common.auth import TokenService, InvalidTokenError
from common.tasks import DetachedTaskRunner
from common.utils import (
    success_response,
    APIException,
    UnauthorizedException,
    NotFoundException,
    ValidationException,
    hash_password,
    verify_password,
    validate_password,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Auth
    "TokenService",
    "InvalidTokenError",
    # Tasks
    "DetachedTaskRunner",
    # Utils
    "success_response",
    "APIException",
    "UnauthorizedException",
    "NotFoundException",
    "ValidationException",
    "hash_password",
    "verify_password",
    "validate_password",
    # Config
    "BaseAppSettings",
]
