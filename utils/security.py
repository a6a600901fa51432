from __future__ import annotations

from typing import Optional
from werkzeug.security import generate_password_hash, check_password_hash


def hash_password(plain: str, method: str = "pbkdf2:sha256", salt_length: int = 16) -> str:
    return generate_password_hash(plain or "", method=method, salt_length=salt_length)


def is_hashed(value: Optional[str]) -> bool:
    if not value:
        return False
    v = str(value)
    # Werkzeug hashes start with a method prefix like 'pbkdf2:sha256:'
    return v.startswith("pbkdf2:") or v.startswith("scrypt:")


def verify_password(stored_value: Optional[str], candidate: str) -> bool:
    """Check ``candidate`` against a stored werkzeug hash.

    Anything that is not a recognised hash never matches; raw secrets are
    not compared.
    """
    if not is_hashed(stored_value):
        return False
    try:
        return check_password_hash(stored_value, candidate or "")
    except ValueError:
        return False
