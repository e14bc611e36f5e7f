from __future__ import annotations

import base64
import binascii
import threading
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, Iterator, Optional, Tuple, TypeVar

if TYPE_CHECKING:  # pragma: no cover
    from .encoder import ValueEncoder


T = TypeVar("T")


class JsonConverter(Generic[T]):
    """
    Per-type adapter that replaces structural encoding for `target_type`.

    `write` returns a JSON-compatible tree (dict, list, str, int, float, bool
    or None); `read` receives the parsed tree and returns the value. Both get
    the calling encoder so nested members can reuse `to_tree` / `from_tree`.
    """

    target_type: type

    def can_convert(self, tp: Any) -> bool:
        return tp is self.target_type

    def write(self, value: T, encoder: "ValueEncoder") -> Any:
        raise NotImplementedError

    def read(self, data: Any, tp: Any, encoder: "ValueEncoder") -> T:
        raise NotImplementedError


class FunctionConverter(JsonConverter[T]):
    """Converter built from two plain callables.

    With `subclasses=True` the converter also matches subclasses of
    `target_type`; by default only the exact type matches.
    """

    def __init__(
        self,
        target_type: type,
        write: Callable[[T], Any],
        read: Callable[[Any], T],
        *,
        subclasses: bool = False,
    ) -> None:
        self.target_type = target_type
        self._write = write
        self._read = read
        self._subclasses = subclasses

    def can_convert(self, tp: Any) -> bool:
        if self._subclasses:
            return isinstance(tp, type) and issubclass(tp, self.target_type)
        return tp is self.target_type

    def write(self, value: T, encoder: "ValueEncoder") -> Any:
        return self._write(value)

    def read(self, data: Any, tp: Any, encoder: "ValueEncoder") -> T:
        return self._read(data)

    def __repr__(self) -> str:
        return f"FunctionConverter({self.target_type.__name__})"


class BytesConverter(JsonConverter[bytes]):
    """bytes and bytearray as standard Base64 strings."""

    target_type = bytes

    def can_convert(self, tp: Any) -> bool:
        return tp is bytes or tp is bytearray

    def write(self, value: bytes, encoder: "ValueEncoder") -> Any:
        return base64.b64encode(bytes(value)).decode("ascii")

    def read(self, data: Any, tp: Any, encoder: "ValueEncoder") -> bytes:
        if not isinstance(data, str):
            raise TypeError(f"expected Base64 string, got {type(data).__name__}")
        try:
            raw = base64.b64decode(data, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid Base64 string: {exc}") from exc
        return bytearray(raw) if tp is bytearray else raw


class ConverterRegistry:
    """
    Ordered list of converters; the first registered match wins.

    Notes
    - A registry is usually built once at startup and shared by reference by
      every `Serializer` that must agree on the same converter set.
    - `add` is serialized with a lock and publishes a new tuple, so lookups
      running on other threads see either the old or the new list. Registering
      while other threads serialize still changes their results mid-flight;
      register everything before concurrent use.
    """

    def __init__(self, converters: Optional[Iterable[JsonConverter[Any]]] = None, *, builtins: bool = True) -> None:
        self._lock = threading.Lock()
        self._custom: Tuple[JsonConverter[Any], ...] = ()
        # Built-ins are consulted after every user converter
        self._builtin: Tuple[JsonConverter[Any], ...] = (BytesConverter(),) if builtins else ()
        for converter in converters or ():
            self.add(converter)

    def add(self, converter: JsonConverter[Any]) -> None:
        if not isinstance(converter, JsonConverter):
            raise TypeError("converter must be a JsonConverter instance")
        with self._lock:
            self._custom = self._custom + (converter,)

    def find(self, tp: Any) -> Optional[JsonConverter[Any]]:
        for converter in self._custom + self._builtin:
            if converter.can_convert(tp):
                return converter
        return None

    def copy(self) -> "ConverterRegistry":
        clone = ConverterRegistry(builtins=False)
        clone._custom = self._custom
        clone._builtin = self._builtin
        return clone

    def __len__(self) -> int:
        return len(self._custom) + len(self._builtin)

    def __iter__(self) -> Iterator[JsonConverter[Any]]:
        return iter(self._custom + self._builtin)


__all__ = [
    "JsonConverter",
    "FunctionConverter",
    "BytesConverter",
    "ConverterRegistry",
]
