"""
Password hashing for local accounts (bcrypt).
"""

import logging
from functools import lru_cache

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of its input
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time comparison. False for a missing or malformed hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password("startupvista-dummy-password", rounds)


def burn_password_check(password: str, rounds: int = 12) -> None:
    """
    Spend the same time as a real comparison when there is no hash to
    compare against, so unknown emails are not distinguishable by latency.
    """
    verify_password(password, _dummy_hash(rounds))
