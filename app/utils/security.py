# app/utils/security.py
"""
Admin shared-secret handling. The plaintext password is never stored or
compared directly; only its bcrypt hash lives in ADMIN_PASSWORD_HASH.
"""

from typing import Optional

import bcrypt


def hash_admin_password(password: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash suitable for ADMIN_PASSWORD_HASH."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_admin_password(password: Optional[str], password_hash: Optional[str]) -> bool:
    """True only if both values are present and the password matches the hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in configuration
        return False
