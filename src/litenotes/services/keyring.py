"""Wrapping and unwrapping of per-user data encryption keys.

A data encryption key (DEK) is generated once per user and only ever stored
sealed under a key-encryption key (KEK) derived from the user's password.
"""

from __future__ import annotations

from dataclasses import dataclass

from litenotes.core.errors import DecryptionError
from litenotes.services.envelope import KEY_LENGTH_BYTES, EnvelopeCipher
from litenotes.services.kdf import SALT_LENGTH_BYTES, derive_key, generate_salt


@dataclass(frozen=True)
class WrappedKey:
    """Persisted key material: hex salt and the sealed hex-encoded DEK."""

    salt_hex: str
    wrapped: str


def wrap_data_key(data_key: bytes, password: str) -> WrappedKey:
    """Seal ``data_key`` under a KEK derived from ``password`` and a fresh salt."""
    if len(data_key) != KEY_LENGTH_BYTES:
        raise ValueError(f"Data keys must be {KEY_LENGTH_BYTES} bytes")
    salt = generate_salt()
    kek = derive_key(password, salt)
    return WrappedKey(salt_hex=salt.hex(), wrapped=EnvelopeCipher.seal(data_key.hex(), kek))


def create_data_key(password: str) -> tuple[bytes, WrappedKey]:
    """Generate a new DEK and its wrapped form for a registering user.

    Returns:
        Tuple of (raw data key, wrapped key material to persist)
    """
    data_key = EnvelopeCipher.generate_key()
    return data_key, wrap_data_key(data_key, password)


def unwrap_data_key(password: str, salt_hex: str, wrapped: str) -> bytes:
    """Recover the raw DEK using the supplied plaintext password.

    Raises:
        DecryptionError: If the envelope does not authenticate under the derived
            KEK or does not contain a well-formed key
    """
    try:
        salt = bytes.fromhex(salt_hex)
    except ValueError as err:
        raise DecryptionError("Stored salt is malformed") from err
    if len(salt) != SALT_LENGTH_BYTES:
        raise DecryptionError("Stored salt has the wrong length")

    kek = derive_key(password, salt)
    encoded = EnvelopeCipher.open_or_raise(wrapped, kek)
    try:
        data_key = bytes.fromhex(encoded.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as err:
        raise DecryptionError("Unwrapped data key is malformed") from err
    if len(data_key) != KEY_LENGTH_BYTES:
        raise DecryptionError("Unwrapped data key has the wrong length")
    return data_key
