"""
Password-keyed envelope: IV ++ AES-256-CBC-PKCS7 ciphertext.

Layout of the envelope bytes
- bytes [0:16]  random IV, fresh for every `encrypt` call
- bytes [16:]   AES-256-CBC ciphertext of the PKCS7-padded plaintext

The key is the SHA-256 digest of the UTF-8 password, recomputed per call.
There is no version tag, length prefix or MAC: both ends must agree on these
constants out of band, and tampering is not detected (a flipped bit either
breaks the padding or decrypts into different bytes). Callers that need
integrity must authenticate the envelope themselves.
"""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Callable

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import CryptoError


logger = logging.getLogger(__name__)

KEY_SIZE = 32
BLOCK_SIZE = 16
IV_SIZE = 16

RandomBytes = Callable[[int], bytes]


def derive_key(password: str) -> bytes:
    """Single SHA-256 over the UTF-8 password; not a slow KDF."""
    if not isinstance(password, str):
        raise TypeError("password must be a str")
    return hashlib.sha256(password.encode("utf-8")).digest()


def _cipher(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt(
    plaintext: bytes,
    password: str,
    *,
    random_bytes: RandomBytes = os.urandom,
    unsafe_log_key_material: bool = False,
) -> bytes:
    """Return `IV ++ ciphertext` for `plaintext` under `password`."""
    key = derive_key(password)
    iv = random_bytes(IV_SIZE)
    if len(iv) != IV_SIZE:
        raise ValueError(f"random source returned {len(iv)} bytes, expected {IV_SIZE}")

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(bytes(plaintext)) + padder.finalize()
    encryptor = _cipher(key, iv).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    envelope = iv + ciphertext
    logger.debug("encrypted %d plaintext bytes into %d envelope bytes", len(plaintext), len(envelope))
    if unsafe_log_key_material:
        logger.debug("UNSAFE key material: ENC-COM %s", bytes(plaintext).hex())
        logger.debug("UNSAFE key material: ENC-IV %s", iv.hex())
        logger.debug("UNSAFE key material: ENC-CIP %s", envelope.hex())
    return envelope


def decrypt(envelope: bytes, password: str, *, unsafe_log_key_material: bool = False) -> bytes:
    """
    Split `envelope` into IV and ciphertext and return the plaintext.

    Raises CryptoError when the ciphertext after the IV is empty or not a
    multiple of the block size, or when padding fails to validate (wrong
    password or corrupted bytes).
    """
    envelope = bytes(envelope)
    body = len(envelope) - IV_SIZE
    if body <= 0 or body % BLOCK_SIZE != 0:
        raise CryptoError(
            f"Envelope of {len(envelope)} bytes is not a {IV_SIZE}-byte IV followed by whole {BLOCK_SIZE}-byte blocks"
        )
    iv, ciphertext = envelope[:IV_SIZE], envelope[IV_SIZE:]
    if unsafe_log_key_material:
        logger.debug("UNSAFE key material: DEC-CIP %s", envelope.hex())
        logger.debug("UNSAFE key material: DEC-IV %s", iv.hex())

    decryptor = _cipher(derive_key(password), iv).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise CryptoError("Decryption failed: invalid padding (wrong secret or corrupted data)") from exc

    logger.debug("decrypted %d envelope bytes into %d plaintext bytes", len(envelope), len(plaintext))
    if unsafe_log_key_material:
        logger.debug("UNSAFE key material: DEC-COM %s", plaintext.hex())
    return plaintext


__all__ = ["KEY_SIZE", "BLOCK_SIZE", "IV_SIZE", "derive_key", "encrypt", "decrypt"]
