from __future__ import annotations

import pytest
from pydantic import ValidationError

from serializer import SerializerOptions


def test_defaults_match_the_wire_policy():
    opts = SerializerOptions()
    assert opts.naming_policy == "camel"
    assert opts.indent == 2
    assert opts.ensure_ascii is False
    assert opts.include_fields is True
    assert opts.max_depth == 64
    assert opts.compression_level == 9
    assert opts.unsafe_log_key_material is False


def test_from_env_reads_prefixed_variables():
    opts = SerializerOptions.from_env(
        {
            "OBJSER_NAMING_POLICY": "NONE",
            "OBJSER_INDENT": "none",
            "OBJSER_ENSURE_ASCII": "yes",
            "OBJSER_INCLUDE_FIELDS": "0",
            "OBJSER_MAX_DEPTH": "10",
            "OBJSER_COMPRESSION_LEVEL": "1",
            "OBJSER_UNSAFE_LOG_KEY_MATERIAL": "true",
        }
    )
    assert opts == SerializerOptions(
        naming_policy="none",
        indent=None,
        ensure_ascii=True,
        include_fields=False,
        max_depth=10,
        compression_level=1,
        unsafe_log_key_material=True,
    )


def test_from_env_ignores_empty_values(monkeypatch):
    monkeypatch.setenv("OBJSER_INDENT", "")
    monkeypatch.delenv("OBJSER_MAX_DEPTH", raising=False)
    assert SerializerOptions.from_env() == SerializerOptions()


def test_from_env_rejects_bad_values():
    with pytest.raises(ValueError):
        SerializerOptions.from_env({"OBJSER_ENSURE_ASCII": "maybe"})
    with pytest.raises(ValidationError):
        SerializerOptions.from_env({"OBJSER_COMPRESSION_LEVEL": "12"})
    with pytest.raises(ValidationError):
        SerializerOptions.from_env({"OBJSER_NAMING_POLICY": "kebab"})


def test_options_are_frozen():
    opts = SerializerOptions()
    with pytest.raises(ValidationError):
        opts.indent = 4  # type: ignore[misc]
    with pytest.raises(ValidationError):
        SerializerOptions(unknown=True)  # type: ignore[call-arg]
