import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; longer secrets are rejected rather than silently truncated.
_MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > _MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be {_MAX_PASSWORD_BYTES} bytes or less")
    return pw_bytes


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    if not password:
        raise ValueError("Password is required")
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError as e:
        # Oversized input or a malformed stored hash.
        logger.warning("Password verification failed: %s", e)
        return False
