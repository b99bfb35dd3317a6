"""
One-time code generation and hashing utilities.

Reset OTPs are stored only as SHA-256 hashes.
"""

import hashlib
import hmac
import secrets


class TokenHasher:
    """
    Handles OTP generation and hashing.
    """

    @staticmethod
    def generate_otp(length: int = 6) -> str:
        """
        Generate a cryptographically secure numeric code.

        Args:
            length: Number of digits

        Returns:
            Zero-padded decimal string
        """
        return f"{secrets.randbelow(10 ** length):0{length}d}"

    @staticmethod
    def hash_token(token: str) -> str:
        """
        Create SHA-256 hash of a token.
        Used for secure storage (never store plain codes).

        Args:
            token: Plain token string

        Returns:
            Hex-encoded SHA-256 hash
        """
        return hashlib.sha256(token.encode()).hexdigest()

    @classmethod
    def matches(cls, token: str, token_hash: str) -> bool:
        """Constant-time comparison of a plain token against a stored hash."""
        if not token or not token_hash:
            return False
        return hmac.compare_digest(cls.hash_token(token), token_hash)
