from __future__ import annotations


class SerializerError(ValueError):
    """Base error for every serialization stage."""


class EncodeError(SerializerError):
    """A value could not be turned into JSON text."""


class DecodeError(SerializerError):
    """
    Input could not be turned back into a value.

    Raised directly when the text is not valid JSON, does not match the
    requested type, or yields null where a value is required. The envelope
    stages raise the subclasses below, so catching `DecodeError` covers
    "wrong secret or corrupted input" as a single failure.
    """


class FormatError(DecodeError):
    """Base64 payload is malformed."""


class CryptoError(DecodeError):
    """Ciphertext length is invalid or padding did not validate after decryption."""


class CompressionError(DecodeError):
    """Compressed stream is empty, corrupt or truncated."""


__all__ = [
    "SerializerError",
    "EncodeError",
    "DecodeError",
    "FormatError",
    "CryptoError",
    "CompressionError",
]
