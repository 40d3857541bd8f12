"""
constgen/formatting.py
======================

Literal formatting rules and the renderer that applies them.

A :class:`TypeFormatRule` has every field optional.  Rules are layered
(system default <- profile default <- per-type override) by
:meth:`TypeFormatRule.merged`, which builds a new rule and never mutates
either side.  Only the fully merged rule is handed to
:func:`format_literal`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional, Tuple

from constgen.values import PrimitiveKind, Value

__all__ = [
    "Radix",
    "TypeFormatRule",
    "SYSTEM_DEFAULT_RULE",
    "format_integer",
    "format_literal",
]


class Radix(Enum):
    BINARY = 2
    OCTAL = 8
    DECIMAL = 10
    HEXADECIMAL = 16

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @classmethod
    def parse(cls, text: str) -> "Radix":
        try:
            return _RADIX_NAMES[text.strip().lower()]
        except KeyError:
            raise ValueError(
                f"unknown radix {text!r} (expected one of: "
                + ", ".join(sorted(_RADIX_NAMES)) + ")"
            ) from None


_PREFIXES = {
    Radix.BINARY: "0b",
    Radix.OCTAL: "0o",
    Radix.DECIMAL: "",
    Radix.HEXADECIMAL: "0x",
}

_DIGIT_FORMATS = {
    Radix.BINARY: "b",
    Radix.OCTAL: "o",
    Radix.DECIMAL: "d",
    Radix.HEXADECIMAL: "x",
}

_RADIX_NAMES = {
    "bin": Radix.BINARY,
    "binary": Radix.BINARY,
    "oct": Radix.OCTAL,
    "octal": Radix.OCTAL,
    "dec": Radix.DECIMAL,
    "decimal": Radix.DECIMAL,
    "hex": Radix.HEXADECIMAL,
    "hexadecimal": Radix.HEXADECIMAL,
}


@dataclass(frozen=True)
class TypeFormatRule:
    """How one semantic type is spelled in one profile.

    ``None`` means "not set at this layer".
    """

    type_name: Optional[str] = None
    radix: Optional[Radix] = None
    group_width: Optional[int] = None
    group_separator: Optional[str] = None
    zero_pad: Optional[int] = None
    omit_prefix: Optional[bool] = None
    boolean: Optional[Tuple[str, str]] = None
    value_prefix: Optional[str] = None
    value_suffix: Optional[str] = None
    imports: Optional[Tuple[str, ...]] = None

    def merged(self, overlay: "TypeFormatRule") -> "TypeFormatRule":
        """Fields set on *overlay* win; the rest come from ``self``."""
        changes = {
            f.name: getattr(overlay, f.name)
            for f in fields(overlay)
            if getattr(overlay, f.name) is not None
        }
        return replace(self, **changes)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


SYSTEM_DEFAULT_RULE = TypeFormatRule(
    type_name=None,
    radix=Radix.DECIMAL,
    group_width=0,
    group_separator="_",
    zero_pad=0,
    omit_prefix=False,
    boolean=("true", "false"),
    value_prefix="",
    value_suffix="",
    imports=(),
)


def _group(digits: str, width: int, separator: str) -> str:
    if width <= 0 or len(digits) <= width:
        return digits
    head = len(digits) % width
    groups = [digits[:head]] if head else []
    groups.extend(digits[i:i + width] for i in range(head, len(digits), width))
    return separator.join(groups)


def format_integer(
    raw: int,
    radix: Radix = Radix.DECIMAL,
    *,
    group_width: int = 0,
    group_separator: str = "_",
    zero_pad: int = 0,
    omit_prefix: bool = False,
) -> str:
    """
    Render *raw* in *radix*.

    Digits are zero padded to ``zero_pad`` first, then grouped from the
    least significant digit, then prefixed (``0x``/``0o``/``0b``) unless
    ``omit_prefix``.  A negative value gets its ``-`` in front of the prefix.

    >>> format_integer(0xdeadbeef, Radix.HEXADECIMAL, group_width=4)
    '0xdead_beef'
    >>> format_integer(-10, Radix.HEXADECIMAL)
    '-0xa'
    """
    digits = format(abs(raw), _DIGIT_FORMATS[radix]).rjust(zero_pad, "0")
    text = _group(digits, group_width, group_separator)
    if not omit_prefix:
        text = radix.prefix + text
    return "-" + text if raw < 0 else text


def format_literal(value: Value, rule: TypeFormatRule) -> str:
    """Spell *value* under a fully merged *rule*, wrapped in prefix/suffix."""
    rule = SYSTEM_DEFAULT_RULE.merged(rule)
    if value.kind is PrimitiveKind.BOOLEAN:
        true_text, false_text = rule.boolean
        literal = true_text if value.raw else false_text
    else:
        literal = format_integer(
            value.raw,
            rule.radix,
            group_width=rule.group_width,
            group_separator=rule.group_separator,
            zero_pad=rule.zero_pad,
            omit_prefix=rule.omit_prefix,
        )
    return f"{rule.value_prefix}{literal}{rule.value_suffix}"
