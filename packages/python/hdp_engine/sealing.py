"""
AES-256-GCM sealing for callers that want confidentiality.

The engine never encrypts. Callers seal a payload before `encode` and open
it after `reconstruct`; the sealed form is `nonce || ciphertext || tag`.
"""

import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import HDPError

KEY_SIZE = 32
NONCE_SIZE = 12


class SealingError(HDPError):
    """Raised when a payload cannot be sealed or opened."""


@dataclass(frozen=True)
class SealedPayload:
    nonce: bytes
    ciphertext: bytes  # includes the 16-byte GCM tag

    def to_bytes(self) -> bytes:
        return self.nonce + self.ciphertext

    @classmethod
    def from_bytes(cls, blob: bytes) -> "SealedPayload":
        if len(blob) <= NONCE_SIZE:
            raise SealingError(f"Sealed payload too short: {len(blob)} bytes")
        return cls(nonce=bytes(blob[:NONCE_SIZE]), ciphertext=bytes(blob[NONCE_SIZE:]))


def generate_key() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def _cipher(key: bytes) -> AESGCM:
    if len(key) != KEY_SIZE:
        raise SealingError(f"AES-256-GCM key must be {KEY_SIZE} bytes, got {len(key)}")
    return AESGCM(key)


def seal(data: bytes, key: bytes, associated_data: Optional[bytes] = None) -> SealedPayload:
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = _cipher(key).encrypt(nonce, data, associated_data)
    return SealedPayload(nonce=nonce, ciphertext=ciphertext)


def unseal(sealed: SealedPayload | bytes, key: bytes, associated_data: Optional[bytes] = None) -> bytes:
    if not isinstance(sealed, SealedPayload):
        sealed = SealedPayload.from_bytes(sealed)
    try:
        return _cipher(key).decrypt(sealed.nonce, sealed.ciphertext, associated_data)
    except InvalidTag as e:
        raise SealingError("Decryption failed: authentication tag mismatch") from e
