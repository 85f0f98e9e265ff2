"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks. The work
factor comes from EVENTAUTH_PASSWORD_SALT_LENGTH (default 12, ~100ms
per hash on modern hardware).
"""

from functools import lru_cache
from typing import Optional

import bcrypt

from eventauth.config import settings

# bcrypt only looks at the first 72 bytes of the password.
_MAX_PASSWORD_BYTES = 72


class HashingError(Exception):
    """Raised when the underlying bcrypt primitive fails."""


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt.

    Learn: bcrypt includes a random salt automatically, so hashing the
    same password twice gives two different digests that both verify.
    Hashes start with "$2b$" and embed the work factor.
    """
    if rounds is None:
        rounds = settings.password_salt_length
    pw_bytes = password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")
    except ValueError as e:
        raise HashingError(f"bcrypt hashing failed (rounds={rounds}): {e}") from e


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Malformed hashes return False."""
    try:
        pw_bytes = password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """A throwaway hash for timing equalisation.

    Learn: when a login names a user that doesn't exist, we still run
    verify_password() against this hash so the response takes as long
    as a wrong-password attempt. Otherwise response time would reveal
    which usernames are registered.
    """
    return hash_password("eventauth-dummy-password")
