"""
constgen/expr.py
================

Expression tree nodes for constant values.

    Literal(value)               a primitive value
    Reference(name)              the value of another constant
    Apply(operator, operands)    an operator applied to sub-expressions

Nodes are frozen and carry the ``(start, end)`` offsets of the text they were
parsed from.  The span is excluded from equality, so two trees compare equal
when they mean the same thing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union

from constgen.values import Value

__all__ = [
    "Span",
    "Literal",
    "Reference",
    "Apply",
    "Expression",
    "iter_nodes",
    "references",
    "reference_nodes",
    "to_source",
]

Span = Tuple[int, int]


@dataclass(frozen=True)
class Literal:
    value: Value
    span: Span = field(default=(0, 0), compare=False, repr=False)


@dataclass(frozen=True)
class Reference:
    name: str
    span: Span = field(default=(0, 0), compare=False, repr=False)


@dataclass(frozen=True)
class Apply:
    operator: str
    operands: Tuple["Expression", ...] = ()
    span: Span = field(default=(0, 0), compare=False, repr=False)


Expression = Union[Literal, Reference, Apply]


def iter_nodes(expression: Expression) -> Iterator[Expression]:
    """Pre-order, left-to-right walk with an explicit stack."""
    stack: List[Expression] = [expression]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, Apply):
            stack.extend(reversed(node.operands))


def reference_nodes(expression: Expression) -> List[Reference]:
    return [node for node in iter_nodes(expression) if isinstance(node, Reference)]


def references(expression: Expression) -> List[str]:
    """Referenced names in first-appearance order, without duplicates."""
    return list(dict.fromkeys(node.name for node in reference_nodes(expression)))


def to_source(expression: Expression) -> str:
    """Render *expression* back into canonical value text."""
    if isinstance(expression, Literal):
        return str(expression.value)
    if isinstance(expression, Reference):
        return expression.name
    parts = [expression.operator] + [to_source(op) for op in expression.operands]
    return "(" + " ".join(parts) + ")"
