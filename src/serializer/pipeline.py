from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Type, TypeVar, Union

from . import cipher, compression
from .converters import ConverterRegistry, JsonConverter
from .encoder import ValueEncoder
from .errors import DecodeError, FormatError
from .options import SerializerOptions


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Plain:
    """Payload is the JSON text itself."""


@dataclass(frozen=True)
class Encrypted:
    """Payload is a Base64 envelope keyed by `secret`."""

    secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.secret, str):
            raise TypeError("secret must be a str")


Protection = Union[Plain, Encrypted]

PLAIN = Plain()


def protection_for(secret: Optional[str]) -> Protection:
    """Map the optional-password calling style onto a protection mode."""
    return PLAIN if secret is None else Encrypted(secret)


class Serializer:
    """
    Value <-> text pipeline.

    Serialize: encode to JSON; with `Encrypted(secret)`, gzip the UTF-8 bytes,
    encrypt them into an IV-prefixed AES-256-CBC envelope and Base64 the result.
    Deserialize runs the same stages in reverse and surfaces the first failure.

    Notes
    - The instance holds no per-call state. It is safe to share between
      threads once its converters are registered.
    - Several serializers can share one `ConverterRegistry` by passing it in.
    """

    def __init__(
        self,
        options: Optional[SerializerOptions] = None,
        *,
        registry: Optional[ConverterRegistry] = None,
        random_bytes: cipher.RandomBytes = os.urandom,
    ) -> None:
        self._options = options or SerializerOptions()
        self._registry = registry if registry is not None else ConverterRegistry()
        self._encoder = ValueEncoder(self._options, self._registry)
        self._random_bytes = random_bytes
        if self._options.unsafe_log_key_material:
            logger.warning(
                "UNSAFE diagnostic mode enabled: IV, ciphertext and compressed plaintext will be logged at DEBUG"
            )

    @property
    def options(self) -> SerializerOptions:
        return self._options

    @property
    def registry(self) -> ConverterRegistry:
        return self._registry

    @property
    def encoder(self) -> ValueEncoder:
        return self._encoder

    def add_converter(self, converter: JsonConverter[Any]) -> None:
        """Register `converter` for every later call on this serializer (and any sharing its registry)."""
        self._registry.add(converter)

    # --------------- Core operations ---------------
    def serialize(self, value: Any, protection: Protection = PLAIN, *, tp: Any = None) -> str:
        text = self._encoder.encode(value, tp)
        if isinstance(protection, Plain):
            return text
        if not isinstance(protection, Encrypted):
            raise TypeError(f"unknown protection mode: {protection!r}")

        packed = compression.compress(text.encode("utf-8"), level=self._options.compression_level)
        envelope = cipher.encrypt(
            packed,
            protection.secret,
            random_bytes=self._random_bytes,
            unsafe_log_key_material=self._options.unsafe_log_key_material,
        )
        logger.debug("serialized %d chars of JSON into a %d-byte envelope", len(text), len(envelope))
        return base64.b64encode(envelope).decode("ascii")

    def deserialize(self, text: str, tp: Type[T], protection: Protection = PLAIN) -> T:
        """
        Rebuild a `tp` value from `text`.

        Raises
        - FormatError: the envelope is not valid Base64.
        - CryptoError: bad envelope length or padding (usually a wrong secret).
        - CompressionError: the decrypted bytes are not a valid gzip stream.
        - DecodeError: the JSON is invalid or does not match `tp`.
        All four derive from DecodeError.
        """
        if isinstance(protection, Plain):
            return self._encoder.decode(text, tp)
        if not isinstance(protection, Encrypted):
            raise TypeError(f"unknown protection mode: {protection!r}")

        envelope = _b64decode(text)
        packed = cipher.decrypt(
            envelope,
            protection.secret,
            unsafe_log_key_material=self._options.unsafe_log_key_material,
        )
        raw = compression.decompress(packed)
        try:
            json_text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Decrypted payload is not valid UTF-8") from exc
        return self._encoder.decode(json_text, tp)


def _b64decode(text: str) -> bytes:
    if not isinstance(text, str):
        raise FormatError(f"Expected Base64 text, got {type(text).__name__}")
    # Line breaks and spaces are tolerated, as in MIME-wrapped Base64
    compact = "".join(text.split())
    try:
        return base64.b64decode(compact.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise FormatError(f"Envelope is not valid Base64: {exc}") from exc


# -------- Process-wide default instance --------
_default: Optional[Serializer] = None
_default_lock = threading.Lock()


def default_serializer() -> Serializer:
    """
    Return the process-wide serializer used by the module-level helpers.

    Its registry is global mutable state: `add_converter` here affects every
    caller in the process. Register converters once at startup.
    """
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Serializer(SerializerOptions.from_env())
    return _default


def add_converter(converter: JsonConverter[Any]) -> None:
    default_serializer().add_converter(converter)


def serialize(value: Any, secret: Optional[str] = None, *, tp: Any = None) -> str:
    return default_serializer().serialize(value, protection_for(secret), tp=tp)


def deserialize(text: str, tp: Type[T], secret: Optional[str] = None) -> T:
    return default_serializer().deserialize(text, tp, protection_for(secret))


__all__ = [
    "Plain",
    "Encrypted",
    "PLAIN",
    "Protection",
    "protection_for",
    "Serializer",
    "default_serializer",
    "add_converter",
    "serialize",
    "deserialize",
]
