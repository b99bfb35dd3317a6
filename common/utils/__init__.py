"""
Utilities module - Common helpers for API responses, exceptions, and passwords.
"""

from common.utils.responses import success_response
from common.utils.exceptions import (
    APIException,
    BadRequestException,
    UnauthorizedException,
    NotFoundException,
    ConflictException,
    ValidationException,
    RateLimitException,
    InternalServerException,
    GatewayTimeoutException,
)
from common.utils.password import hash_password, verify_password, validate_password

__all__ = [
    "success_response",
    "APIException",
    "BadRequestException",
    "UnauthorizedException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "RateLimitException",
    "InternalServerException",
    "GatewayTimeoutException",
    "hash_password",
    "verify_password",
    "validate_password",
]
