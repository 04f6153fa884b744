# File: manga_api/core/security.py

"""
Security primitives for the manga API.

Two things live here and nowhere else:
  - session token generation (opaque random strings, never parsed)
  - password hashing / verification (bcrypt)

Plaintext passwords only ever pass through ``hash_password`` and
``verify_password``; nothing in here logs its inputs.
"""

import secrets

import bcrypt

from manga_api.core.config import settings

# 32 random bytes -> 64 hex characters
TOKEN_BYTES = 32
TOKEN_LENGTH = TOKEN_BYTES * 2


def generate_token() -> str:
    """
    Return a new session token.

    The value is a pure lookup key. Uniqueness is enforced by the unique
    constraint on ``sessions.token``.
    """
    return secrets.token_hex(TOKEN_BYTES)


def hash_password(plaintext: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")


def verify_password(plaintext: str, digest: str) -> bool:
    """
    Check ``plaintext`` against a stored bcrypt digest.

    A malformed digest counts as a mismatch instead of an error.
    """
    if not plaintext or not digest:
        return False
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
    except ValueError:
        return False
