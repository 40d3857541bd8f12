"""
constgen/values.py
==================

Primitive kinds, resolved values and semantic types.

A *semantic type* (``PhysAddr``, ``u32``, ``bool`` ...) names the meaning of
a constant.  Every semantic type maps onto exactly one :class:`PrimitiveKind`
and, for integers, a range derived from its bit width and signedness.
Values themselves are plain tagged Python scalars.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

from constgen.errors import (
    ArithmeticOverflowError,
    TypeMismatchError,
    UnknownTypeError,
)

__all__ = [
    "PrimitiveKind",
    "Value",
    "SemanticType",
    "TypeRegistry",
    "BUILTIN_TYPES",
    "INT128_MIN",
    "INT128_MAX",
    "primitive_kind_of",
    "make_value",
    "check_value",
    "check_int128",
]

logger = logging.getLogger(__name__)

INT128_MIN = -(1 << 127)
INT128_MAX = (1 << 127) - 1


class PrimitiveKind(Enum):
    INTEGER = "integer"
    BOOLEAN = "boolean"

    @classmethod
    def parse(cls, text: str) -> "PrimitiveKind":
        """Accept ``integer``/``int`` and ``boolean``/``bool``."""
        key = text.strip().lower()
        if key in ("integer", "int"):
            return cls.INTEGER
        if key in ("boolean", "bool"):
            return cls.BOOLEAN
        raise ValueError(f"unknown primitive kind {text!r}")


# ═══════════════════════════════════════════════════════════════════════════
# VALUES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Value:
    """A fully evaluated constant value."""

    kind: PrimitiveKind
    raw: Union[int, bool]

    @classmethod
    def integer(cls, raw: int) -> "Value":
        return make_value(PrimitiveKind.INTEGER, raw)

    @classmethod
    def boolean(cls, raw: bool) -> "Value":
        return make_value(PrimitiveKind.BOOLEAN, raw)

    @property
    def is_integer(self) -> bool:
        return self.kind is PrimitiveKind.INTEGER

    @property
    def is_boolean(self) -> bool:
        return self.kind is PrimitiveKind.BOOLEAN

    def __str__(self) -> str:
        if self.kind is PrimitiveKind.BOOLEAN:
            return "true" if self.raw else "false"
        return str(self.raw)


def make_value(kind: PrimitiveKind, raw: Union[int, bool]) -> Value:
    """Build a :class:`Value`, rejecting scalars of the wrong Python type.

    ``bool`` is a subclass of ``int``, so both directions are checked
    explicitly.
    """
    if kind is PrimitiveKind.BOOLEAN:
        if not isinstance(raw, bool):
            raise TypeMismatchError(f"Expected a boolean, got {raw!r}")
    elif kind is PrimitiveKind.INTEGER:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise TypeMismatchError(f"Expected an integer, got {raw!r}")
    return Value(kind, raw)


def check_int128(raw: int, what: str = "value") -> int:
    """Raise :class:`ArithmeticOverflowError` outside the signed 128-bit range."""
    if raw < INT128_MIN or raw > INT128_MAX:
        raise ArithmeticOverflowError(
            f"{what} {raw} does not fit in a signed 128-bit integer"
        )
    return raw


# ═══════════════════════════════════════════════════════════════════════════
# SEMANTIC TYPES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SemanticType:
    """
    A named type a constant may declare.

    Integer types carry a range: ``[-(2**(bits-1)), 2**(bits-1) - 1]`` when
    signed, ``[0, 2**bits - 1]`` otherwise.  ``bits`` is ignored for
    booleans.
    """

    name: str
    kind: PrimitiveKind
    bits: int = 64
    signed: bool = False

    def __post_init__(self) -> None:
        if self.kind is PrimitiveKind.INTEGER and not 1 <= self.bits <= 128:
            raise ValueError(
                f"type {self.name!r}: bits must be between 1 and 128, got {self.bits}"
            )

    @property
    def min_value(self) -> Optional[int]:
        if self.kind is not PrimitiveKind.INTEGER:
            return None
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> Optional[int]:
        if self.kind is not PrimitiveKind.INTEGER:
            return None
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def contains(self, raw: int) -> bool:
        lo, hi = self.min_value, self.max_value
        if lo is None or hi is None:
            return False
        return lo <= raw <= hi

    def describe(self) -> str:
        if self.kind is PrimitiveKind.BOOLEAN:
            return f"{self.name} (boolean)"
        sign = "signed" if self.signed else "unsigned"
        return f"{self.name} ({sign} {self.bits}-bit integer)"


def primitive_kind_of(semantic_type: SemanticType) -> PrimitiveKind:
    return semantic_type.kind


def check_value(semantic_type: SemanticType, value: Value) -> Value:
    """Check *value* against *semantic_type*; return it unchanged.

    Raises :class:`TypeMismatchError` on a kind mismatch and
    :class:`ArithmeticOverflowError` when an integer lies outside the range.
    """
    if value.kind is not semantic_type.kind:
        raise TypeMismatchError(
            f"Type {semantic_type.name!r} expects a {semantic_type.kind.value} "
            f"value, got {value.kind.value} {value}"
        )
    if semantic_type.kind is PrimitiveKind.INTEGER and not semantic_type.contains(value.raw):
        raise ArithmeticOverflowError(
            f"Value {value.raw} is out of range for {semantic_type.describe()} "
            f"[{semantic_type.min_value}, {semantic_type.max_value}]"
        )
    return value


def _builtin_types() -> Dict[str, SemanticType]:
    types: Dict[str, SemanticType] = {}
    for bits in (8, 16, 32, 64, 128):
        types[f"u{bits}"] = SemanticType(f"u{bits}", PrimitiveKind.INTEGER, bits, False)
        types[f"i{bits}"] = SemanticType(f"i{bits}", PrimitiveKind.INTEGER, bits, True)
    types["usize"] = SemanticType("usize", PrimitiveKind.INTEGER, 64, False)
    types["isize"] = SemanticType("isize", PrimitiveKind.INTEGER, 64, True)
    types["bool"] = SemanticType("bool", PrimitiveKind.BOOLEAN)
    return types


BUILTIN_TYPES: Mapping[str, SemanticType] = MappingProxyType(_builtin_types())


class TypeRegistry:
    """
    Lookup table from type names to :class:`SemanticType`.

    Declared types shadow builtins of the same name.  Without ``strict``,
    a name that was never declared resolves to an unsigned 64-bit integer
    type of that name.
    """

    def __init__(self, declared: Iterable[SemanticType] = (), *,
                 strict: bool = False) -> None:
        types = dict(BUILTIN_TYPES)
        for semantic_type in declared:
            types[semantic_type.name] = semantic_type
        self._types: Mapping[str, SemanticType] = MappingProxyType(types)
        self.strict = strict

    def lookup(self, name: str) -> SemanticType:
        try:
            return self._types[name]
        except KeyError:
            pass
        if self.strict:
            raise UnknownTypeError(name)
        logger.debug("type %r is not declared, assuming unsigned 64-bit integer", name)
        return SemanticType(name, PrimitiveKind.INTEGER, 64, False)

    def check(self, semantic_type: SemanticType, value: Value) -> Value:
        return check_value(semantic_type, value)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __iter__(self) -> Iterator[SemanticType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
