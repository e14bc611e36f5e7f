from __future__ import annotations

import hashlib

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from serializer import CryptoError
from serializer.cipher import BLOCK_SIZE, IV_SIZE, KEY_SIZE, decrypt, derive_key, encrypt


def _fixed_iv(n: int) -> bytes:
    return bytes(range(n))


def test_key_is_sha256_of_utf8_password():
    assert derive_key("pw") == hashlib.sha256(b"pw").digest()
    assert derive_key("pässwörd") == hashlib.sha256("pässwörd".encode("utf-8")).digest()
    assert len(derive_key("")) == KEY_SIZE


def test_envelope_layout_matches_reference_aes_cbc():
    plaintext = b"compressed bytes go here"
    envelope = encrypt(plaintext, "pw", random_bytes=_fixed_iv)

    assert envelope[:IV_SIZE] == bytes(range(16))
    body = envelope[IV_SIZE:]
    assert len(body) % BLOCK_SIZE == 0

    decryptor = Cipher(algorithms.AES(hashlib.sha256(b"pw").digest()), modes.CBC(envelope[:IV_SIZE])).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    assert unpadder.update(padded) + unpadder.finalize() == plaintext


@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 1000])
def test_round_trip_and_padded_length(size):
    plaintext = bytes(i % 251 for i in range(size))
    envelope = encrypt(plaintext, "secret")
    # PKCS7 always adds between 1 and 16 bytes
    assert len(envelope) == IV_SIZE + (size // BLOCK_SIZE + 1) * BLOCK_SIZE
    assert decrypt(envelope, "secret") == plaintext


def test_fresh_iv_per_call():
    first = encrypt(b"data", "pw")
    second = encrypt(b"data", "pw")
    assert first[:IV_SIZE] != second[:IV_SIZE]
    assert first != second


def test_short_random_source_is_rejected():
    with pytest.raises(ValueError):
        encrypt(b"data", "pw", random_bytes=lambda n: b"\x00" * (n - 1))


@pytest.mark.parametrize("length", [0, 15, 16, 16 + 15, 16 + 17])
def test_bad_envelope_length(length):
    with pytest.raises(CryptoError):
        decrypt(b"\x00" * length, "pw")


def test_invalid_padding_is_reported():
    key = derive_key("pw")
    iv = bytes(16)
    # Raw block whose last plaintext byte is 0x00: never valid PKCS7
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    body = encryptor.update(bytes(16)) + encryptor.finalize()
    with pytest.raises(CryptoError):
        decrypt(iv + body, "pw")
