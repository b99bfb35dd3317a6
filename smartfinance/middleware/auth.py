"""
Authentication middleware for protected routes.

Validates the bearer token, confirms the account still exists, confirms the
caller's device still has a session, and attaches the user context to the
request. Each step runs only after the previous one succeeded:

    UNAUTHENTICATED -> TOKEN_VERIFIED -> SUBJECT_CONFIRMED
        -> SESSION_CONFIRMED -> ADMITTED

Any failure ends in a 401. After admission the session's lastActive is
refreshed by a detached task so the request never waits on it.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from common.auth import InvalidTokenError, TokenService
from common.tasks import DetachedTaskRunner
from smartfinance.services.auth.device_detector import DeviceFingerprinter, resolve_client_ip
from smartfinance.services.auth.errors import (
    InvalidTokenException,
    MissingCredentialException,
    SessionTerminatedException,
    SessionVerificationFailedException,
    SubjectNotFoundException,
)
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.user.user_service import UserService

logger = logging.getLogger(__name__)


class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_VERIFIED = "token_verified"
    SUBJECT_CONFIRMED = "subject_confirmed"
    SESSION_CONFIRMED = "session_confirmed"
    ADMITTED = "admitted"


@dataclass(frozen=True)
class AuthContext:
    """Identity of an admitted request."""
    user_id: str
    device_id: str
    state: AuthState = AuthState.ADMITTED


class AuthMiddleware:
    """
    Middleware that validates token and session and attaches user to request.
    """

    def __init__(
        self,
        token_service: TokenService,
        user_service: UserService,
        session_manager: SessionManager,
        task_runner: DetachedTaskRunner,
    ):
        """
        Initialize AuthMiddleware.

        Args:
            token_service: For token verification
            user_service: For subject existence checks
            session_manager: For session existence checks and activity refresh
            task_runner: Runs the post-admission activity refresh
        """
        self._token_service = token_service
        self._user_service = user_service
        self._session_manager = session_manager
        self._task_runner = task_runner

    async def require_auth(self, request: Request) -> AuthContext:
        """
        Validate request is authenticated.

        Args:
            request: HTTP request object

        Returns:
            AuthContext for the caller

        Raises:
            MissingCredentialException: No bearer token (AUTH_REQUIRED)
            InvalidTokenException: Bad, expired or wrong-purpose token
            SubjectNotFoundException: Account deleted
            SessionVerificationFailedException: Session check errored
            SessionTerminatedException: Device session removed
                (SESSION_TERMINATED)

        Side Effects:
            - Attaches user_id and device_id to request.state
            - Schedules a detached lastActive refresh
        """
        state = AuthState.UNAUTHENTICATED

        token = self._extract_token(request)
        if not token:
            raise MissingCredentialException()

        try:
            claims = self._token_service.verify(token)
        except InvalidTokenError:
            logger.debug(f"Rejected request in state {state.value}: invalid token")
            raise InvalidTokenException()
        state = AuthState.TOKEN_VERIFIED

        user_id = claims.subject_id
        if not await self._user_service.exists(user_id):
            logger.info(f"Rejected request in state {state.value}: user {user_id} no longer exists")
            raise SubjectNotFoundException()
        state = AuthState.SUBJECT_CONFIRMED

        try:
            device_id = self.device_id_for(request)
            has_session = await self._session_manager.exists(user_id, device_id)
        except Exception as e:
            logger.error(f"Session check failed for user {user_id}: {e}")
            raise SessionVerificationFailedException()

        if not has_session:
            logger.info(f"Rejected request in state {state.value}: session terminated for user {user_id}")
            raise SessionTerminatedException()

        request.state.user_id = user_id
        request.state.device_id = device_id

        self._task_runner.spawn(
            self._session_manager.touch(user_id, device_id),
            name=f"touch-session-{device_id}",
        )

        return AuthContext(user_id=user_id, device_id=device_id, state=AuthState.ADMITTED)

    @staticmethod
    def device_id_for(request: Request) -> str:
        """deviceId of the caller, derived the same way as at login."""
        ip_address = resolve_client_ip(
            request.client.host if request.client else None,
            request.headers,
        )
        user_agent = request.headers.get("User-Agent", "")
        return DeviceFingerprinter.compute_device_id(user_agent, ip_address)

    def _extract_token(self, request: Request) -> Optional[str]:
        """
        Extract bearer token from Authorization header.

        Args:
            request: HTTP request object

        Returns:
            Token string if present and valid format, None otherwise

        Expected format: "Authorization: Bearer <token>"
        """
        auth_header = request.headers.get("Authorization")

        if not auth_header:
            return None

        parts = auth_header.split()

        if len(parts) != 2:
            return None

        scheme, token = parts

        if scheme.lower() != "bearer":
            return None

        return token
