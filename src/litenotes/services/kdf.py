"""Password-based key derivation for note encryption.

PBKDF2-HMAC-SHA512 producing a 32-byte key-encryption key (KEK). Derivation is
deterministic and does not verify the password: a wrong password yields a
different key, which is detected later when unwrapping the data key fails
authentication.
"""

from __future__ import annotations

import secrets
from typing import Final

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from litenotes.core.settings import MIN_KDF_ITERATIONS, settings

KEY_LENGTH_BYTES: Final[int] = 32
SALT_LENGTH_BYTES: Final[int] = 16


def generate_salt() -> bytes:
    """Return a fresh random per-user salt."""
    return secrets.token_bytes(SALT_LENGTH_BYTES)


def derive_key(password: bytes | str, salt: bytes, iterations: int | None = None) -> bytes:
    """Derive a 32-byte key from ``password`` and ``salt``.

    Args:
        password: Plaintext password; strings are UTF-8 encoded
        salt: Per-user salt of ``SALT_LENGTH_BYTES`` bytes
        iterations: Work factor override; defaults to ``settings.kdf_iterations``

    Returns:
        Raw key bytes suitable for AES-256

    Raises:
        ValueError: If the salt length or iteration count is unsupported
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    if len(salt) != SALT_LENGTH_BYTES:
        raise ValueError(f"Salt must be {SALT_LENGTH_BYTES} bytes")

    rounds = settings.kdf_iterations if iterations is None else iterations
    if rounds < MIN_KDF_ITERATIONS:
        raise ValueError(f"KDF iterations must be at least {MIN_KDF_ITERATIONS}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH_BYTES,
        salt=salt,
        iterations=rounds,
    )
    return kdf.derive(password)
