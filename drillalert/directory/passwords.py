"""
passwords.py — bcrypt hashing for directory credentials.

Hashing is CPU-bound; async callers should go through ``hash_password_async``
so a bulk import does not stall the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import bcrypt

from drillalert.core.config import settings
from drillalert.core.errors import ValidationError

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Return a bcrypt hash (salt embedded) for ``password``."""
    if not password:
        raise ValidationError("Password cannot be empty", field="password")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"password cannot exceed {MAX_PASSWORD_BYTES} bytes", field="password"
        )
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches ``password_hash``; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError as exc:
        logger.warning("Password verification failed: %s", exc)
        return False


async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, password, password_hash)
