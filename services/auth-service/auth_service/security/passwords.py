"""Password hashing helpers (argon2id via argon2-cffi)."""

from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash ``password`` with argon2id."""
    return _hasher.hash(password)


def verify_password(username: str, stored_hash: str, candidate: str) -> bool:
    """Return ``True`` if ``candidate`` matches ``stored_hash``.

    argon2 compares digests in constant time; mismatches and malformed hashes
    both report ``False``.
    """
    try:
        return _hasher.verify(stored_hash, candidate)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning("stored password hash for %s is malformed", username)
        return False
