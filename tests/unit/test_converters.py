from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List

import pytest

from serializer import (
    BytesConverter,
    ConverterRegistry,
    DecodeError,
    EncodeError,
    FunctionConverter,
    JsonConverter,
    SerializerOptions,
    ValueEncoder,
)


class Point:
    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Point) and (self.x, self.y) == (other.x, other.y)


class Point3(Point):
    pass


@dataclass
class Route:
    name: str
    stops: List[Point]


@dataclass
class Money:
    amount: int
    currency: str


class MoneyConverter(JsonConverter[Money]):
    target_type = Money

    def write(self, value: Money, encoder: ValueEncoder) -> Any:
        return f"{value.amount} {value.currency}"

    def read(self, data: Any, tp: Any, encoder: ValueEncoder) -> Money:
        amount, currency = data.split(" ")
        return Money(int(amount), currency)


def _point_converter(**kwargs: Any) -> FunctionConverter[Point]:
    return FunctionConverter(
        Point,
        lambda p: f"{p.x},{p.y}",
        lambda s: Point(*(int(v) for v in s.split(","))),
        **kwargs,
    )


def test_registry_starts_with_builtin_bytes_converter():
    registry = ConverterRegistry()
    assert len(registry) == 1
    assert isinstance(registry.find(bytes), BytesConverter)
    assert isinstance(registry.find(bytearray), BytesConverter)
    assert ConverterRegistry(builtins=False).find(bytes) is None


def test_first_registered_match_wins_and_precedes_builtins():
    first = FunctionConverter(bytes, lambda b: b.hex(), bytes.fromhex)
    second = FunctionConverter(bytes, lambda b: "ignored", lambda s: b"")
    registry = ConverterRegistry([first, second])
    assert registry.find(bytes) is first
    assert list(registry)[-1].__class__ is BytesConverter


def test_exact_type_match_by_default():
    registry = ConverterRegistry([_point_converter()])
    assert registry.find(Point) is not None
    assert registry.find(Point3) is None

    widened = ConverterRegistry([_point_converter(subclasses=True)])
    assert widened.find(Point3) is not None


def test_copy_is_independent():
    registry = ConverterRegistry()
    clone = registry.copy()
    registry.add(_point_converter())
    assert registry.find(Point) is not None
    assert clone.find(Point) is None


def test_add_rejects_non_converters():
    with pytest.raises(TypeError):
        ConverterRegistry().add(lambda v: v)  # type: ignore[arg-type]


def test_converter_used_for_nested_members():
    enc = ValueEncoder(SerializerOptions(indent=None), ConverterRegistry([_point_converter()]))
    route = Route("loop", [Point(0, 0), Point(3, 4)])
    text = enc.encode(route)
    assert text == '{"name":"loop","stops":["0,0","3,4"]}'
    assert enc.decode(text, Route) == route


def test_converter_takes_precedence_over_structural_encoding():
    plain = ValueEncoder()
    custom = ValueEncoder(registry=ConverterRegistry([MoneyConverter()]))

    assert json.loads(plain.encode(Money(5, "EUR"))) == {"amount": 5, "currency": "EUR"}
    assert json.loads(custom.encode(Money(5, "EUR"))) == "5 EUR"
    assert custom.decode('"7 USD"', Money) == Money(7, "USD")


def test_converter_failures_are_wrapped():
    def boom(_: Any) -> Any:
        raise RuntimeError("nope")

    enc = ValueEncoder(registry=ConverterRegistry([FunctionConverter(Point, boom, boom)]))
    with pytest.raises(EncodeError) as excinfo:
        enc.encode(Point(1, 2))
    assert isinstance(excinfo.value.__cause__, RuntimeError)

    with pytest.raises(DecodeError):
        enc.decode('"1,2"', Point)


def test_bytes_converter_rejects_bad_base64():
    with pytest.raises(DecodeError):
        ValueEncoder().decode('"not base64!"', bytes)
    with pytest.raises(DecodeError):
        ValueEncoder().decode("12", bytes)
