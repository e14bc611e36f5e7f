from __future__ import annotations

import pytest

from serializer import CompressionError
from serializer.compression import compress, decompress


def test_round_trip_and_shrinks_repetitive_input():
    data = b'{"intField": 5, "listField": [1, 2, 3]}' * 100
    packed = compress(data)
    assert len(packed) < len(data)
    assert packed[:2] == b"\x1f\x8b"
    assert decompress(packed) == data


def test_output_is_deterministic():
    assert compress(b"same input") == compress(b"same input")


def test_level_zero_is_larger_than_level_nine():
    data = b"abcabcabc" * 500
    assert len(compress(data, level=0)) > len(compress(data, level=9))
    with pytest.raises(ValueError):
        compress(data, level=10)


def test_empty_payload_round_trips():
    assert decompress(compress(b"")) == b""


@pytest.mark.parametrize("blob", [b"", b"\x00\x01plain bytes", b"\x1f"])
def test_bad_header(blob):
    with pytest.raises(CompressionError):
        decompress(blob)


def test_truncated_stream():
    packed = compress(b"x" * 1000)
    with pytest.raises(CompressionError):
        decompress(packed[:-10])


def test_checksum_mismatch():
    packed = bytearray(compress(b"hello world"))
    packed[-8] ^= 0xFF  # first byte of the CRC32 trailer
    with pytest.raises(CompressionError):
        decompress(bytes(packed))
