"""Passcode hashing and verification using bcrypt."""

import logging

import bcrypt

from peaceblog.config import settings

logger = logging.getLogger(__name__)

# bcrypt only reads this many bytes of input
MAX_PASSCODE_BYTES = 72


def passcode_too_long(passcode: str) -> bool:
    return len(passcode.encode("utf-8")) > MAX_PASSCODE_BYTES


def hash_passcode(passcode: str, rounds: int | None = None) -> str:
    """Hash a passcode with a fresh bcrypt salt.

    Raises:
        ValueError: if the passcode is longer than 72 bytes as UTF-8
    """
    if passcode_too_long(passcode):
        raise ValueError(f"Passcode must be at most {MAX_PASSCODE_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(passcode.encode("utf-8"), salt).decode("utf-8")


def verify_passcode(passcode: str, passcode_hash: str) -> bool:
    """Check a supplied passcode against a stored bcrypt hash.

    bcrypt compares in constant time. Oversized passcodes and malformed
    stored hashes count as a mismatch rather than an error so callers only
    ever see True or False.
    """
    if passcode_too_long(passcode):
        logger.info(f"Rejected passcode longer than {MAX_PASSCODE_BYTES} bytes")
        return False
    try:
        return bcrypt.checkpw(passcode.encode("utf-8"), passcode_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored passcode hash is not a valid bcrypt hash")
        return False
