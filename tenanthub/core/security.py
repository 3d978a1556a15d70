"""
Password hashing and session token utilities.

Rules:
- Always use a strong hashing algorithm (bcrypt)
- Session tokens are random, opaque, and only their digest is stored
- NEVER log plaintext passwords, hashes or raw tokens
"""
from __future__ import annotations
import hashlib
import secrets
import bcrypt

# Compared against when no account matches, so unknown emails cost the same as wrong passwords.
_DUMMY_HASH = bcrypt.hashpw(b"tenanthub-dummy-password", bcrypt.gensalt()).decode()


def hash_password(plain: str) -> str:
    """
    Hash a plaintext password using bcrypt.

    Args:
        plain: Plaintext password

    Returns:
        Hashed password string
    """
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verify a plaintext password against a hash.

    A missing hash still runs one bcrypt comparison and returns False.
    """
    if not hashed:
        bcrypt.checkpw(plain.encode(), _DUMMY_HASH.encode())
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


def generate_session_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()
