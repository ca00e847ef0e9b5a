# src/litenotes/services/envelope.py
"""Authenticated envelope encryption.

An envelope is ``base64(nonce || ciphertext || tag)`` produced by AES-256-GCM
with a fresh 96-bit random nonce per call. Opening needs only the key.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from litenotes.core.errors import DecryptionError

logger = logging.getLogger(__name__)

KEY_LENGTH_BYTES: Final[int] = 32
NONCE_LENGTH_BYTES: Final[int] = 12
TAG_LENGTH_BYTES: Final[int] = 16
MIN_ENVELOPE_BYTES: Final[int] = NONCE_LENGTH_BYTES + TAG_LENGTH_BYTES


@dataclass(frozen=True)
class Opened:
    """Envelope authenticated and decrypted successfully."""

    plaintext: bytes

    @property
    def ok(self) -> bool:
        return True

    def text(self) -> str:
        """Return the plaintext decoded as UTF-8."""
        return self.plaintext.decode("utf-8")


@dataclass(frozen=True)
class OpenFailed:
    """Envelope could not be opened; ``reason`` is safe to log."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


OpenResult = Opened | OpenFailed


def _check_key(key: bytes) -> None:
    if len(key) != KEY_LENGTH_BYTES:
        raise ValueError(f"Envelope keys must be {KEY_LENGTH_BYTES} bytes")


class EnvelopeCipher:
    """AES-256-GCM seal/open over self-describing base64 envelopes."""

    @staticmethod
    def generate_key() -> bytes:
        """Return a fresh random 256-bit key."""
        return AESGCM.generate_key(bit_length=KEY_LENGTH_BYTES * 8)

    @staticmethod
    def seal(plaintext: bytes | str, key: bytes) -> str:
        """Encrypt ``plaintext`` under ``key``.

        Args:
            plaintext: Bytes to protect; strings are UTF-8 encoded
            key: 32-byte symmetric key

        Returns:
            Base64 envelope containing nonce, ciphertext and tag
        """
        _check_key(key)
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        nonce = secrets.token_bytes(NONCE_LENGTH_BYTES)
        # AESGCM appends the 16-byte tag to the ciphertext.
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    @staticmethod
    def open(envelope: str | bytes, key: bytes) -> OpenResult:
        """Authenticate and decrypt an envelope without raising.

        Returns:
            ``Opened`` on success, ``OpenFailed`` for malformed encoding,
            truncated envelopes, or failed tag verification
        """
        _check_key(key)
        try:
            raw = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError):
            return OpenFailed("malformed encoding")

        if len(raw) < MIN_ENVELOPE_BYTES:
            return OpenFailed("envelope too short")

        nonce, sealed = raw[:NONCE_LENGTH_BYTES], raw[NONCE_LENGTH_BYTES:]
        try:
            return Opened(AESGCM(key).decrypt(nonce, sealed, None))
        except InvalidTag:
            return OpenFailed("authentication failed")

    @staticmethod
    def open_or_raise(envelope: str | bytes, key: bytes) -> bytes:
        """Decrypt an envelope, raising on any failure.

        Raises:
            DecryptionError: If the envelope cannot be opened under ``key``
        """
        result = EnvelopeCipher.open(envelope, key)
        if isinstance(result, OpenFailed):
            raise DecryptionError(f"Decryption failed: {result.reason}")
        return result.plaintext
