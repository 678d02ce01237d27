"""
Custodia Cryptographic Primitives.

Provides:
- AES-256-GCM payload encryption under a password-derived key
- Keccak-256 password digests, shared by every registry implementation

Wire format of an encrypted payload::

    base64( nonce[12] || ciphertext || tag[16] )
"""

from __future__ import annotations

import base64
import binascii
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import DecryptionFailure
from ..utils import keccak256, sha256_digest

NONCE_SIZE = 12
TAG_SIZE = 16
ZERO_DIGEST = b"\x00" * 32

# Wrong password and tampered ciphertext must be indistinguishable.
_DECRYPT_FAILED = "Decryption failed: wrong password or corrupted data"


def derive_key(password: str) -> bytes:
    """Derive the 256-bit AES key from a password.

    Single unsalted SHA-256 of the UTF-8 password, so payloads stay
    readable by existing share links.
    """
    # TODO: switch to salted Argon2id with the salt stored in the payload
    # header once a payload version byte exists to tell the two apart.
    return sha256_digest(password.encode("utf-8"))


def encrypt(plaintext: bytes, password: str) -> str:
    """Encrypt ``plaintext`` and return the base64 payload.

    A fresh random nonce is drawn for every call.
    """
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(derive_key(password)).encrypt(nonce, plaintext, None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt(payload: str | bytes, password: str) -> bytes:
    """Decrypt a payload produced by :func:`encrypt`.

    Raises:
        DecryptionFailure: On any malformed payload or tag mismatch.
    """
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionFailure(_DECRYPT_FAILED) from exc

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionFailure(_DECRYPT_FAILED)

    nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        return AESGCM(derive_key(password)).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionFailure(_DECRYPT_FAILED) from exc


def password_digest(password: str) -> bytes:
    """One-way digest stored on a grant in place of the password."""
    return keccak256(password.encode("utf-8"))


def digests_match(expected: bytes, password: str) -> bool:
    """Constant-time check of ``password`` against a stored digest."""
    return hmac.compare_digest(expected, password_digest(password))
