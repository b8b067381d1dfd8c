"""
Tagged value model.

Every field of an account update body is one of:

    ABSENT     None
    PRIMITIVE  bool / int / float / str
    OPAQUE     OpaqueToken (public keys, field elements, hashes)
    LIST       list
    RECORD     dict
    CALLABLE   host-object methods that leaked into a payload (never diffed)

`classify()` is the only function that looks at Python types. The comparator
and the key enumerator dispatch on its result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from autrace.errors import AutraceError, ErrorCode

_INTEGER_RE = re.compile(r"^-?[0-9]+$")


class ValueKind(str, Enum):
    ABSENT = "absent"
    PRIMITIVE = "primitive"
    OPAQUE = "opaque"
    LIST = "list"
    RECORD = "record"
    CALLABLE = "callable"


@dataclass(frozen=True)
class OpaqueToken:
    """
    A domain value that is only meaningful through its canonical encoding.
    Two tokens are equal iff their encodings match, whatever their kind.
    """
    kind: str
    encoded: str

    def canonical(self) -> str:
        return self.encoded

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OpaqueToken):
            return NotImplemented
        return self.encoded == other.encoded

    def __hash__(self) -> int:
        return hash(self.encoded)

    def __str__(self) -> str:
        return self.encoded

    @classmethod
    def public_key(cls, encoded: str) -> "OpaqueToken":
        return cls("public_key", encoded)


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.ABSENT
    if isinstance(value, OpaqueToken):
        return ValueKind.OPAQUE
    if isinstance(value, dict):
        return ValueKind.RECORD
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, (bool, int, float, str)):
        return ValueKind.PRIMITIVE
    if callable(value):
        return ValueKind.CALLABLE
    raise AutraceError(
        ErrorCode.VALUE_UNSUPPORTED,
        f"Value of type {type(value).__name__} is not canonical",
        details={"type": type(value).__name__},
    )


def _base58_of(raw: Any) -> Optional[str]:
    for attr in ("to_base58", "toBase58"):
        method = getattr(raw, attr, None)
        if callable(method):
            return str(method())
    return None


def canonicalize_value(raw: Any) -> Any:
    """
    Convert a host value into the tagged model.

    Mappings become dicts, tuples and lists become lists, objects exposing a
    base58 encoding become public-key tokens. Anything else that is not a
    primitive or a callable is rejected.
    """
    if raw is None or isinstance(raw, (bool, int, float, str, OpaqueToken)):
        return raw
    if isinstance(raw, Mapping):
        return {str(k): canonicalize_value(v) for k, v in raw.items()}
    if isinstance(raw, (list, tuple)):
        return [canonicalize_value(v) for v in raw]
    encoded = _base58_of(raw)
    if encoded is not None:
        return OpaqueToken.public_key(encoded)
    if callable(raw):
        return raw
    raise AutraceError(
        ErrorCode.VALUE_UNSUPPORTED,
        f"Cannot canonicalize value of type {type(raw).__name__}",
        details={"type": type(raw).__name__},
    )


def is_integer_like(value: Any) -> bool:
    """True for ints (not bools) and decimal integer strings such as "-1000"."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and bool(_INTEGER_RE.match(value))


def as_exact_int(value: Any) -> int:
    # int() on a decimal string is exact at any magnitude
    return int(value)


def render_value(value: Any) -> Any:
    """JSON-friendly view of a tagged value (opaque tokens by encoding)."""
    kind = classify(value)
    if kind is ValueKind.OPAQUE:
        return value.canonical()
    if kind is ValueKind.RECORD:
        return {k: render_value(v) for k, v in value.items() if classify(v) is not ValueKind.CALLABLE}
    if kind is ValueKind.LIST:
        return [render_value(v) for v in value]
    if kind is ValueKind.CALLABLE:
        return None
    return value
