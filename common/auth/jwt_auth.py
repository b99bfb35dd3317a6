"""
JWT token service.

Issues and verifies signed, time-limited bearer tokens that bind a subject
(user ID) and an optional purpose tag.

Tokens are stateless: nothing is stored server-side, so a token stays
cryptographically valid until it expires. Callers that need revocation must
check their own state (for example a session registry) after `verify`.

Example:
    tokens = TokenService(secret="your-secret-key")

    token = tokens.issue_login_token(user_id)
    claims = tokens.verify(token)
    print(claims.subject_id)

    reset = tokens.issue_reset_token(user_id)
    tokens.verify(reset, expected_purpose=PASSWORD_RESET_PURPOSE)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError


PASSWORD_RESET_PURPOSE = "password_reset"


class InvalidTokenError(ValueError):
    """Token is malformed, has a bad signature, is expired, or has the wrong purpose."""


@dataclass(frozen=True)
class TokenClaims:
    """Verified token contents."""
    subject_id: str
    purpose: Optional[str] = None


class TokenService:
    """
    JWT issuance and verification.

    Login tokens carry no purpose; password-reset tokens carry
    purpose="password_reset". `verify` compares the purpose explicitly, so a
    reset token is never accepted where a login token is expected and the
    other way round.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        login_token_ttl: timedelta = timedelta(days=1),
        reset_token_ttl: timedelta = timedelta(minutes=15),
    ):
        """
        Initialize the token service.

        Args:
            secret: Secret key for JWT signing (keep this secure!)
            algorithm: JWT algorithm (default: HS256)
            login_token_ttl: Lifetime of login tokens
            reset_token_ttl: Lifetime of password-reset tokens
        """
        if not secret:
            raise ValueError("JWT secret must not be empty")

        self.secret = secret
        self.algorithm = algorithm
        self.login_token_ttl = login_token_ttl
        self.reset_token_ttl = reset_token_ttl

    def issue(
        self,
        subject_id: str,
        purpose: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """
        Create a signed token.

        Args:
            subject_id: The user's ID (stored in "sub")
            purpose: Optional purpose tag
            ttl: Lifetime; defaults to the login token lifetime

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.login_token_ttl),
        }
        if purpose:
            payload["purpose"] = purpose
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_login_token(self, subject_id: str) -> str:
        """Issue a login token (no purpose, 1 day by default)."""
        return self.issue(subject_id, ttl=self.login_token_ttl)

    def issue_reset_token(self, subject_id: str) -> str:
        """Issue a password-reset token (15 minutes by default)."""
        return self.issue(
            subject_id,
            purpose=PASSWORD_RESET_PURPOSE,
            ttl=self.reset_token_ttl,
        )

    def verify(
        self,
        token: str,
        expected_purpose: Optional[str] = None,
    ) -> TokenClaims:
        """
        Verify and decode a token.

        Does not check that the subject still exists.

        Args:
            token: Encoded JWT
            expected_purpose: Purpose the caller requires (None for login tokens)

        Returns:
            TokenClaims

        Raises:
            InvalidTokenError: For any failure. The message is deliberately
                the same for expired, malformed and wrong-purpose tokens.
        """
        if not token:
            raise InvalidTokenError("Invalid token")

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
            )
        except JWTError as e:
            raise InvalidTokenError("Invalid token") from e

        subject_id = payload.get("sub")
        if not subject_id or not isinstance(subject_id, str):
            raise InvalidTokenError("Invalid token")

        purpose = payload.get("purpose")
        if purpose != expected_purpose:
            raise InvalidTokenError("Invalid token")

        return TokenClaims(subject_id=subject_id, purpose=purpose)
