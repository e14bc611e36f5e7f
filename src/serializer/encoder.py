"""
Value <-> JSON text under a fixed formatting policy.

The encoder walks a value together with its static type (or its runtime type
when none is given) and produces a JSON-compatible tree, which is then written
with the stdlib `json` module. Decoding parses the text and rebuilds the value
against the caller-requested type.

Lookup order for every node
1. A converter registered for the node's type.
2. Structural encoding: primitives verbatim, enums as their value, date/time,
   UUID and Decimal through pydantic, sequences as arrays, mappings as objects,
   records (dataclasses, pydantic models, NamedTuples, annotated plain classes)
   as objects keyed by member name under the naming policy.
"""

from __future__ import annotations

import collections.abc as abc
import dataclasses
import enum
import json
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from types import UnionType
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
from uuid import UUID

from pydantic import BaseModel, TypeAdapter
from pydantic.alias_generators import to_camel

from .converters import ConverterRegistry
from .errors import DecodeError, EncodeError, SerializerError
from .options import SerializerOptions


T = TypeVar("T")

NoneType = type(None)

# Leaf types validated and dumped by pydantic (ISO 8601 strings, decimal strings)
_PYDANTIC_LEAVES = (datetime, date, time, timedelta, UUID, Decimal)

_SEQUENCE_BASES = (
    list,
    tuple,
    set,
    frozenset,
    abc.Sequence,
    abc.MutableSequence,
    abc.Set,
    abc.MutableSet,
    abc.Collection,
    abc.Iterable,
)
_MAPPING_BASES = (dict, abc.Mapping, abc.MutableMapping)

_MISSING = object()


@dataclasses.dataclass(frozen=True)
class _Member:
    attr: str  # Python attribute name
    key: str  # JSON member name
    tp: Any
    required: bool
    arg: str  # constructor keyword
    init: bool = True


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def _strip(tp: Any) -> Any:
    """Drop Annotated metadata and treat unbound type variables as Any."""
    while hasattr(tp, "__metadata__"):
        tp = tp.__origin__
    if isinstance(tp, TypeVar):
        return Any
    return tp


def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is UnionType


def _admits_none(tp: Any) -> bool:
    if tp is None or tp is Any or tp is object or tp is NoneType:
        return True
    if _is_union(tp):
        return any(_admits_none(_strip(arg)) for arg in get_args(tp))
    return False


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _exact(data: Any, arm: Any) -> bool:
    arm = _strip(arm)
    base = get_origin(arm) or arm
    return isinstance(base, type) and type(data) is base


def _matches(value: Any, arm: Any) -> bool:
    """Whether a runtime value belongs to one arm of a Union."""
    arm = _strip(arm)
    if arm is Any or arm is object:
        return True
    origin = get_origin(arm)
    if origin is Literal:
        return value in get_args(arm)
    base = origin or arm
    if not isinstance(base, type):
        return False
    if isinstance(value, bool) and base is not bool:
        return False
    if base is float and isinstance(value, int):
        return True
    return isinstance(value, base)


class ValueEncoder:
    """
    Encode values to JSON text and decode them back.

    Notes
    - `to_tree` / `from_tree` expose the JSON-compatible intermediate form so
      converters can delegate nested members back to the encoder.
    - Member tables are cached per type.
    """

    def __init__(self, options: Optional[SerializerOptions] = None, registry: Optional[ConverterRegistry] = None) -> None:
        self._options = options or SerializerOptions()
        self._registry = registry if registry is not None else ConverterRegistry()
        self._records: Dict[Any, Optional[Tuple[str, Tuple[_Member, ...]]]] = {}
        self._adapters: Dict[Any, TypeAdapter[Any]] = {}

    @property
    def options(self) -> SerializerOptions:
        return self._options

    @property
    def registry(self) -> ConverterRegistry:
        return self._registry

    # --------------- Public API ---------------
    def encode(self, value: Any, tp: Any = None) -> str:
        """Return the JSON text for `value`; `tp` defaults to the runtime type."""
        tree = self.to_tree(value, tp)
        indent = self._options.indent
        try:
            return json.dumps(
                tree,
                indent=indent,
                ensure_ascii=self._options.ensure_ascii,
                allow_nan=False,
                separators=None if indent is not None else (",", ":"),
            )
        except (TypeError, ValueError) as exc:
            raise EncodeError(f"Failed to write JSON: {exc}") from exc

    def decode(self, text: str, tp: Type[T]) -> T:
        """Parse `text` and rebuild a value of type `tp`."""
        if not isinstance(text, str):
            raise DecodeError(f"Expected JSON text, got {type(text).__name__}")
        try:
            data = json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            raise DecodeError(f"Invalid JSON: {exc}") from exc
        except RecursionError as exc:
            raise DecodeError("Invalid JSON: nesting too deep") from exc
        return self.from_tree(data, tp)

    def to_tree(self, value: Any, tp: Any = None) -> Any:
        return self._write(value, tp, "$", 0)

    def from_tree(self, data: Any, tp: Any) -> Any:
        return self._read(data, tp, "$", 0)

    # --------------- Encode ---------------
    def _write(self, value: Any, tp: Any, path: str, depth: int) -> Any:
        if depth > self._options.max_depth:
            raise EncodeError(f"{path}: maximum depth {self._options.max_depth} exceeded (reference cycle?)")
        tp = _strip(tp)

        if value is None:
            if _admits_none(tp):
                return None
            raise EncodeError(f"{path}: None is not a valid {_type_name(tp)}")

        if tp is None or tp is Any or tp is object:
            tp = type(value)
        if _is_union(tp):
            arms = [arg for arg in get_args(tp) if arg is not NoneType]
            arm = next((a for a in arms if _matches(value, a)), None)
            if arm is None:
                raise EncodeError(f"{path}: {type(value).__name__} does not match {_type_name(tp)}")
            return self._write(value, arm, path, depth)

        converter = self._registry.find(tp)
        if converter is not None:
            try:
                return converter.write(value, self)
            except SerializerError:
                raise
            except Exception as exc:
                raise EncodeError(f"{path}: converter {converter!r} failed: {exc}") from exc

        origin = get_origin(tp)
        args = get_args(tp)

        if origin is Literal:
            if value not in args:
                raise EncodeError(f"{path}: {value!r} is not one of {list(args)!r}")
            return value
        if isinstance(tp, type) and issubclass(tp, enum.Enum):
            if not isinstance(value, tp):
                raise EncodeError(f"{path}: expected {tp.__name__}, got {type(value).__name__}")
            return value.value
        if tp is bool:
            if not isinstance(value, bool):
                raise EncodeError(f"{path}: expected bool, got {type(value).__name__}")
            return value
        if tp is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise EncodeError(f"{path}: expected int, got {type(value).__name__}")
            return int(value)
        if tp is float:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise EncodeError(f"{path}: expected float, got {type(value).__name__}")
            if not math.isfinite(value):
                raise EncodeError(f"{path}: {value!r} cannot be represented in JSON")
            return value
        if tp is str:
            if not isinstance(value, str):
                raise EncodeError(f"{path}: expected str, got {type(value).__name__}")
            return value
        if tp in _PYDANTIC_LEAVES:
            if not isinstance(value, tp):
                raise EncodeError(f"{path}: expected {tp.__name__}, got {type(value).__name__}")
            return self._adapter(tp).dump_python(value, mode="json")

        base = origin or tp
        if base in _MAPPING_BASES:
            return self._write_mapping(value, args, path, depth)
        if base in _SEQUENCE_BASES:
            return self._write_sequence(value, base, args, path, depth)

        record = self._record(base)
        if record is not None:
            if not isinstance(value, base):
                raise EncodeError(f"{path}: expected {base.__name__}, got {type(value).__name__}")
            out: Dict[str, Any] = {}
            for m in record[1]:
                member = getattr(value, m.attr, _MISSING)
                if member is _MISSING:
                    continue
                out[m.key] = self._write(member, m.tp, f"{path}.{m.key}", depth + 1)
            return out

        raise EncodeError(f"{path}: type {_type_name(tp)} is not supported; register a converter for it")

    def _write_sequence(self, value: Any, base: Any, args: Tuple[Any, ...], path: str, depth: int) -> List[Any]:
        if isinstance(value, (str, bytes, bytearray, abc.Mapping)) or not isinstance(value, abc.Iterable):
            raise EncodeError(f"{path}: expected a sequence, got {type(value).__name__}")
        items = list(value)
        if base is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            if len(items) != len(args):
                raise EncodeError(f"{path}: expected {len(args)} items, got {len(items)}")
            return [self._write(item, args[i], f"{path}[{i}]", depth + 1) for i, item in enumerate(items)]
        item_tp = args[0] if args else None
        return [self._write(item, item_tp, f"{path}[{i}]", depth + 1) for i, item in enumerate(items)]

    def _write_mapping(self, value: Any, args: Tuple[Any, ...], path: str, depth: int) -> Dict[str, Any]:
        if not isinstance(value, abc.Mapping):
            raise EncodeError(f"{path}: expected a mapping, got {type(value).__name__}")
        value_tp = args[1] if len(args) == 2 else None
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(key, str):
                name = key
            elif isinstance(key, int) and not isinstance(key, bool):
                name = str(key)
            else:
                raise EncodeError(f"{path}: mapping keys must be str or int, got {type(key).__name__}")
            out[name] = self._write(item, value_tp, f"{path}.{name}", depth + 1)
        return out

    # --------------- Decode ---------------
    def _read(self, data: Any, tp: Any, path: str, depth: int) -> Any:
        if depth > self._options.max_depth:
            raise DecodeError(f"{path}: maximum depth {self._options.max_depth} exceeded")
        tp = _strip(tp)

        if tp is None or tp is Any or tp is object:
            return data
        if data is None:
            if _admits_none(tp):
                return None
            raise DecodeError(f"{path}: null is not a valid {_type_name(tp)}")

        if _is_union(tp):
            arms = [arg for arg in get_args(tp) if arg is not NoneType]
            if len(arms) == 1:
                return self._read(data, arms[0], path, depth)
            # Arms of the same JSON type as the data go first; the rest coerce.
            for arm in sorted(arms, key=lambda a: not _exact(data, a)):
                try:
                    return self._read(data, arm, path, depth)
                except DecodeError:
                    continue
            raise DecodeError(f"{path}: value does not match any of {[_type_name(a) for a in arms]}")

        converter = self._registry.find(tp)
        if converter is not None:
            try:
                return converter.read(data, tp, self)
            except SerializerError:
                raise
            except Exception as exc:
                raise DecodeError(f"{path}: converter {converter!r} failed: {exc}") from exc

        origin = get_origin(tp)
        args = get_args(tp)

        if origin is Literal:
            for option in args:
                if type(option) is type(data) and option == data:
                    return option
            raise DecodeError(f"{path}: {data!r} is not one of {list(args)!r}")
        if isinstance(tp, type) and issubclass(tp, enum.Enum):
            try:
                return tp(data)
            except ValueError as exc:
                raise DecodeError(f"{path}: {data!r} is not a valid {tp.__name__}") from exc
        if tp is NoneType:
            raise DecodeError(f"{path}: expected null, got {type(data).__name__}")
        if tp is bool:
            if not isinstance(data, bool):
                raise DecodeError(f"{path}: expected bool, got {type(data).__name__}")
            return data
        if tp is int:
            if isinstance(data, bool) or not isinstance(data, int):
                raise DecodeError(f"{path}: expected int, got {type(data).__name__}")
            return data
        if tp is float:
            if isinstance(data, bool) or not isinstance(data, (int, float)):
                raise DecodeError(f"{path}: expected float, got {type(data).__name__}")
            try:
                return float(data)
            except OverflowError as exc:
                raise DecodeError(f"{path}: number out of range for float") from exc
        if tp is str:
            if not isinstance(data, str):
                raise DecodeError(f"{path}: expected str, got {type(data).__name__}")
            return data
        if tp in _PYDANTIC_LEAVES:
            try:
                return self._adapter(tp).validate_python(data)
            except ValueError as exc:
                raise DecodeError(f"{path}: invalid {tp.__name__}: {exc}") from exc

        base = origin or tp
        if base in _MAPPING_BASES:
            return self._read_mapping(data, args, path, depth)
        if base in _SEQUENCE_BASES:
            return self._read_sequence(data, base, args, path, depth)

        record = self._record(base, DecodeError)
        if record is not None:
            return self._read_record(data, base, record, path, depth)

        raise DecodeError(f"{path}: type {_type_name(tp)} is not supported; register a converter for it")

    def _read_sequence(self, data: Any, base: Any, args: Tuple[Any, ...], path: str, depth: int) -> Any:
        if not isinstance(data, list):
            raise DecodeError(f"{path}: expected array, got {type(data).__name__}")
        if base is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            if len(data) != len(args):
                raise DecodeError(f"{path}: expected {len(args)} items, got {len(data)}")
            return tuple(self._read(item, args[i], f"{path}[{i}]", depth + 1) for i, item in enumerate(data))
        item_tp = args[0] if args else None
        items = [self._read(item, item_tp, f"{path}[{i}]", depth + 1) for i, item in enumerate(data)]
        if base is tuple:
            return tuple(items)
        if base is frozenset:
            return frozenset(items)
        if base in (set, abc.Set, abc.MutableSet):
            try:
                return set(items)
            except TypeError as exc:
                raise DecodeError(f"{path}: set items must be hashable") from exc
        return items

    def _read_mapping(self, data: Any, args: Tuple[Any, ...], path: str, depth: int) -> Dict[Any, Any]:
        if not isinstance(data, dict):
            raise DecodeError(f"{path}: expected object, got {type(data).__name__}")
        key_tp = _strip(args[0]) if len(args) == 2 else None
        value_tp = args[1] if len(args) == 2 else None
        out: Dict[Any, Any] = {}
        for name, item in data.items():
            key: Any = name
            if key_tp is int:
                try:
                    key = int(name)
                except ValueError as exc:
                    raise DecodeError(f"{path}: key {name!r} is not an int") from exc
            out[key] = self._read(item, value_tp, f"{path}.{name}", depth + 1)
        return out

    def _read_record(
        self,
        data: Any,
        cls: Any,
        record: Tuple[str, Tuple[_Member, ...]],
        path: str,
        depth: int,
    ) -> Any:
        if not isinstance(data, dict):
            raise DecodeError(f"{path}: expected object for {cls.__name__}, got {type(data).__name__}")
        kind, members = record
        values: Dict[str, Any] = {}
        for m in members:
            if m.key in data:
                values[m.attr] = self._read(data[m.key], m.tp, f"{path}.{m.key}", depth + 1)
            elif m.required:
                raise DecodeError(f"{path}: missing required member '{m.key}' for {cls.__name__}")
        try:
            return self._build(cls, kind, members, values)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"{path}: cannot construct {cls.__name__}: {exc}") from exc

    @staticmethod
    def _build(cls: Any, kind: str, members: Tuple[_Member, ...], values: Dict[str, Any]) -> Any:
        if kind == "plain":
            obj = cls()
            for attr, val in values.items():
                setattr(obj, attr, val)
            return obj
        kwargs = {m.arg: values[m.attr] for m in members if m.init and m.attr in values}
        obj = cls(**kwargs)
        for m in members:
            if not m.init and m.attr in values:
                object.__setattr__(obj, m.attr, values[m.attr])
        return obj

    # --------------- Type introspection ---------------
    def _key(self, name: str, alias: Optional[str] = None) -> str:
        if alias:
            return alias
        if self._options.naming_policy == "camel":
            return to_camel(name)
        return name

    def _adapter(self, tp: Any) -> TypeAdapter[Any]:
        adapter = self._adapters.get(tp)
        if adapter is None:
            adapter = self._adapters[tp] = TypeAdapter(tp)
        return adapter

    def _record(self, cls: Any, error: Type[SerializerError] = EncodeError) -> Optional[Tuple[str, Tuple[_Member, ...]]]:
        """Return (kind, members) for record types, None for anything else."""
        if not isinstance(cls, type):
            return None
        try:
            return self._records[cls]
        except KeyError:
            pass
        try:
            record = self._inspect(cls)
        except NameError as exc:
            raise error(f"Cannot resolve annotations of {cls.__name__}: {exc}") from exc
        if record is not None:
            seen: Dict[str, str] = {}
            for m in record[1]:
                if m.key in seen:
                    raise error(
                        f"{cls.__name__}: members '{seen[m.key]}' and '{m.attr}' both map to JSON name '{m.key}'"
                    )
                seen[m.key] = m.attr
        self._records[cls] = record
        return record

    def _inspect(self, cls: type) -> Optional[Tuple[str, Tuple[_Member, ...]]]:
        if dataclasses.is_dataclass(cls):
            hints = get_type_hints(cls)
            members = []
            for f in dataclasses.fields(cls):
                if f.metadata.get("ignore"):
                    continue
                has_default = f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
                members.append(
                    _Member(
                        attr=f.name,
                        key=self._key(f.name, f.metadata.get("alias")),
                        tp=hints.get(f.name, Any),
                        required=f.init and not has_default,
                        arg=f.name,
                        init=f.init,
                    )
                )
            return ("dataclass", tuple(members))

        if issubclass(cls, BaseModel):
            members = [
                _Member(
                    attr=name,
                    key=self._key(name, info.alias),
                    tp=info.annotation,
                    required=info.is_required(),
                    arg=info.alias or name,
                )
                for name, info in cls.model_fields.items()
                if not info.exclude
            ]
            return ("model", tuple(members))

        if issubclass(cls, tuple) and hasattr(cls, "_fields"):
            hints = get_type_hints(cls)
            defaults = getattr(cls, "_field_defaults", {})
            members = [
                _Member(
                    attr=name,
                    key=self._key(name),
                    tp=hints.get(name, Any),
                    required=name not in defaults,
                    arg=name,
                )
                for name in cls._fields
            ]
            return ("namedtuple", tuple(members))

        if self._options.include_fields and cls.__module__ != "builtins":
            hints = get_type_hints(cls)
            members = [
                _Member(
                    attr=name,
                    key=self._key(name),
                    tp=hint,
                    required=not hasattr(cls, name),
                    arg=name,
                )
                for name, hint in hints.items()
                if not name.startswith("_") and hint is not ClassVar and get_origin(hint) is not ClassVar
            ]
            if members:
                return ("plain", tuple(members))
        return None


__all__ = ["ValueEncoder"]
