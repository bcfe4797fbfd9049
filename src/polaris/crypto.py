"""
Password-based key derivation for wallet encryption keys.

Keys are derived with PBKDF2-HMAC-SHA256 over a per-wallet random salt.
Only the salt is persisted; the key lives in memory while a wallet is loaded.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from dataclasses import dataclass

PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # bytes
SALT_LENGTH = 16  # bytes

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


@dataclass(frozen=True)
class DerivedKey:
    key: str  # hex
    salt: str  # hex


def derive_encryption_key(password: str, salt: str | None = None) -> DerivedKey:
    """
    Derive an encryption key from a password.

    Args:
        password: User password
        salt: Hex salt from storage; a fresh random salt is generated if None

    Returns:
        DerivedKey with the hex key and the salt that was used

    Raises:
        TypeError: If password or salt is not a string
    """
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    if salt is not None and not isinstance(salt, str):
        raise TypeError("salt must be a string")

    use_salt = salt or secrets.token_hex(SALT_LENGTH)
    key = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        use_salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
        dklen=KEY_LENGTH,
    )
    return DerivedKey(key=key.hex(), salt=use_salt)


def sha256(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def generate_random_hex(n_bytes: int = 32) -> str:
    return secrets.token_hex(n_bytes)


def is_valid_hex(value: str, expected_length: int | None = None) -> bool:
    """Check that value is a hex string, optionally of an exact length in characters."""
    if not _HEX_RE.match(value):
        return False
    if expected_length and len(value) != expected_length:
        return False
    return True
