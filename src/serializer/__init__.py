"""
Typed values to portable JSON text, optionally sealed in a password envelope.

Serialize:   value -> JSON text [-> gzip -> AES-256-CBC (IV prefixed) -> Base64]
Deserialize: [Base64 -> AES-256-CBC -> gunzip ->] JSON text -> value
"""

from .converters import BytesConverter, ConverterRegistry, FunctionConverter, JsonConverter
from .encoder import ValueEncoder
from .errors import (
    CompressionError,
    CryptoError,
    DecodeError,
    EncodeError,
    FormatError,
    SerializerError,
)
from .options import SerializerOptions
from .pipeline import (
    PLAIN,
    Encrypted,
    Plain,
    Protection,
    Serializer,
    add_converter,
    default_serializer,
    deserialize,
    protection_for,
    serialize,
)

__all__ = [
    "BytesConverter",
    "ConverterRegistry",
    "FunctionConverter",
    "JsonConverter",
    "ValueEncoder",
    "SerializerError",
    "EncodeError",
    "DecodeError",
    "FormatError",
    "CryptoError",
    "CompressionError",
    "SerializerOptions",
    "PLAIN",
    "Plain",
    "Encrypted",
    "Protection",
    "Serializer",
    "add_converter",
    "default_serializer",
    "deserialize",
    "protection_for",
    "serialize",
]
