"""
Rejections raised by the authentication gate.

All of them are 401s. Invalid tokens and deleted subjects share one public
message so a caller cannot tell them apart; only a terminated session gets
its own code, so the client can send the user back to the login page.
"""

from common.utils.exceptions import UnauthorizedException

GENERIC_AUTH_FAILURE = "Invalid or expired token"


class MissingCredentialException(UnauthorizedException):
    """No bearer token on the request."""

    def __init__(self):
        super().__init__(message="Authentication required", code="AUTH_REQUIRED")


class InvalidTokenException(UnauthorizedException):
    """Token is malformed, expired, or carries the wrong purpose."""

    def __init__(self):
        super().__init__(message=GENERIC_AUTH_FAILURE, code="UNAUTHORIZED")


class SubjectNotFoundException(UnauthorizedException):
    """Token is valid but the account behind it is gone."""

    def __init__(self):
        super().__init__(message=GENERIC_AUTH_FAILURE, code="UNAUTHORIZED")


class SessionTerminatedException(UnauthorizedException):
    """Token and account are valid but this device's session was removed."""

    def __init__(self):
        super().__init__(
            message="Your session has been terminated. Please log in again.",
            code="SESSION_TERMINATED",
        )


class SessionVerificationFailedException(UnauthorizedException):
    """The session check could not be completed; the request is rejected."""

    def __init__(self):
        super().__init__(message=GENERIC_AUTH_FAILURE, code="UNAUTHORIZED")
