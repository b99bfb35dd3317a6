"""
Password hashing and strength validation.

Example:
    from common.utils import hash_password, verify_password, validate_password

    is_valid, errors = validate_password("weakpass")
    if not is_valid:
        print("Password errors:", errors)

    hashed = hash_password("Str0ng!Pass")
    assert verify_password("Str0ng!Pass", hashed)
"""

import base64
import hashlib
import re
from typing import List, Tuple

import bcrypt as bcrypt_lib


def _prehash_password(password: str) -> str:
    """
    Pre-hash password with SHA-256 before bcrypt.

    This handles bcrypt's 72-byte limit and ensures consistent
    behavior across all password lengths.
    """
    sha256_hash = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(sha256_hash).decode("utf-8")


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password using bcrypt with SHA-256 pre-hashing."""
    prehashed = _prehash_password(password)
    salt = bcrypt_lib.gensalt(rounds=rounds)
    return bcrypt_lib.hashpw(prehashed.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against its bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt_lib.checkpw(
            _prehash_password(password).encode("utf-8"),
            hashed.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False


def validate_password(
    password: str,
    min_length: int = 8,
    max_length: int = 12,
    require_uppercase: bool = True,
    require_lowercase: bool = True,
    require_digit: bool = True,
    require_special: bool = True,
) -> Tuple[bool, List[str]]:
    """
    Validate password strength.

    Args:
        password: The password to validate
        min_length: Minimum password length
        max_length: Maximum password length
        require_uppercase: Require at least one uppercase letter
        require_lowercase: Require at least one lowercase letter
        require_digit: Require at least one digit
        require_special: Require at least one non-alphanumeric character

    Returns:
        Tuple of (is_valid: bool, errors: List[str])

    Examples:
        >>> validate_password("weak")[0]
        False
        >>> validate_password("Str0ng!Pass")[0]
        True
    """
    errors: List[str] = []

    if not isinstance(password, str):
        return False, ["Password must be a string"]

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")

    if len(password) > max_length:
        errors.append(f"Password must be no more than {max_length} characters")

    if require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")

    if require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")

    if require_digit and not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")

    if require_special and not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one special character")

    return len(errors) == 0, errors
