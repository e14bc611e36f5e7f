from __future__ import annotations

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


# Environment variable names for convenience configuration
ENV_NAMING_POLICY = "OBJSER_NAMING_POLICY"
ENV_INDENT = "OBJSER_INDENT"
ENV_ENSURE_ASCII = "OBJSER_ENSURE_ASCII"
ENV_INCLUDE_FIELDS = "OBJSER_INCLUDE_FIELDS"
ENV_MAX_DEPTH = "OBJSER_MAX_DEPTH"
ENV_COMPRESSION_LEVEL = "OBJSER_COMPRESSION_LEVEL"
ENV_UNSAFE_LOG_KEY_MATERIAL = "OBJSER_UNSAFE_LOG_KEY_MATERIAL"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _getenv(environ: Mapping[str, str], name: str) -> Optional[str]:
    val = environ.get(name)
    return val if val not in (None, "") else None


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


class SerializerOptions(BaseModel):
    """
    Fixed formatting and pipeline policy shared by both ends of a payload.

    Fields
    - naming_policy: "camel" renders member names in lower camel case
      (`int_field` -> `intField`); "none" keeps the Python attribute names.
      Mapping keys are never renamed.
    - indent: spaces per indentation level; None writes compact JSON.
    - ensure_ascii: when False, non-ASCII characters are written verbatim.
    - include_fields: serialize annotated attributes of plain classes.
    - max_depth: nesting limit for encode and decode (cycles hit this limit).
    - compression_level: gzip level used before encryption (9 = smallest).
    - unsafe_log_key_material: diagnostic mode that logs IV, ciphertext and
      compressed bytes at DEBUG. Never enable outside local debugging.

    Notes
    - Both endpoints must agree on naming_policy; the other fields only affect
      how text is written or how much nesting is tolerated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    naming_policy: Literal["camel", "none"] = "camel"
    indent: Optional[int] = Field(default=2, ge=0)
    ensure_ascii: bool = False
    include_fields: bool = True
    max_depth: int = Field(default=64, ge=1)
    compression_level: int = Field(default=9, ge=0, le=9)
    unsafe_log_key_material: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SerializerOptions":
        """Build options from `OBJSER_*` variables; unset variables keep defaults."""
        env = os.environ if environ is None else environ
        values = {}

        policy = _getenv(env, ENV_NAMING_POLICY)
        if policy is not None:
            values["naming_policy"] = policy.strip().lower()

        indent = _getenv(env, ENV_INDENT)
        if indent is not None:
            values["indent"] = None if indent.strip().lower() == "none" else int(indent)

        for name, field_name in (
            (ENV_ENSURE_ASCII, "ensure_ascii"),
            (ENV_INCLUDE_FIELDS, "include_fields"),
            (ENV_UNSAFE_LOG_KEY_MATERIAL, "unsafe_log_key_material"),
        ):
            raw = _getenv(env, name)
            if raw is not None:
                values[field_name] = _parse_bool(name, raw)

        depth = _getenv(env, ENV_MAX_DEPTH)
        if depth is not None:
            values["max_depth"] = int(depth)

        level = _getenv(env, ENV_COMPRESSION_LEVEL)
        if level is not None:
            values["compression_level"] = int(level)

        return cls(**values)


__all__ = ["SerializerOptions"]
