"""Password hashing with bcrypt."""

import os

import bcrypt

from stackmentor.models.user import BCRYPT_MAX_BYTES


def _rounds() -> int:
    return int(os.getenv("BCRYPT_ROUNDS", "12"))


def hash_password(password: str) -> str:
    """Hash a plain-text password.

    Args:
        password: Plain-text password (at most 72 bytes once encoded)

    Returns:
        bcrypt hash as text, suitable for the password_hash column
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=_rounds())).decode("ascii")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plain-text password against a stored hash.

    Never raises: malformed hashes and over-long passwords simply fail.
    """
    if not password_hash:
        return False
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("ascii"))
    except ValueError:
        return False
