"""
constgen/parser.py
==================

Value text -> :mod:`constgen.expr` tree.

The value language is a tiny prefix notation::

    4096                      decimal integer (``_`` separators allowed)
    0x1000_0000 0o755 0b1010  radix integers
    true false                booleans
    KERNEL_BASE               reference to another constant
    (add KERNEL_BASE 0x1000)  operator application, nested up to MAX_NESTING

The operator and its operands are separated by whitespace, and ``_`` in a
number only ever sits between two digits.

Parsing is done with a parsimonious PEG grammar and a ``NodeVisitor`` that
builds the tree.  Operator names and operand counts are checked against an
:class:`~constgen.operators.OperatorRegistry` while the tree is built, so a
malformed expression never reaches the resolver.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from constgen.errors import (
    ArithmeticOverflowError,
    ConstgenError,
    ExpressionSyntaxError,
)
from constgen.expr import Apply, Expression, Literal, Reference, Span
from constgen.operators import OperatorRegistry, default_registry
from constgen.values import Value, check_int128

__all__ = [
    "EXPRESSION_GRAMMAR",
    "MAX_NESTING",
    "ExpressionBuilder",
    "parse_expression",
    "literal_from_native",
    "is_identifier",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# GRAMMAR
# ═══════════════════════════════════════════════════════════════════════════

EXPRESSION_GRAMMAR = Grammar(r'''
    value            = _ expression _
    expression       = application / boolean / integer / reference

    application      = "(" _ operator operands _ ")"
    operands         = (__ expression)*
    operator         = ~r"[A-Za-z_][A-Za-z0-9_]*"

    boolean          = ~r"(true|false)(?![A-Za-z0-9_])"
    integer          = binary_integer / octal_integer / hex_integer / decimal_integer
    binary_integer   = ~r"[-+]?0[bB][01]+(_[01]+)*(?![A-Za-z0-9_])"
    octal_integer    = ~r"[-+]?0[oO][0-7]+(_[0-7]+)*(?![A-Za-z0-9_])"
    hex_integer      = ~r"[-+]?0[xX][0-9a-fA-F]+(_[0-9a-fA-F]+)*(?![A-Za-z0-9_])"
    decimal_integer  = ~r"[-+]?[0-9]+(_[0-9]+)*(?![A-Za-z0-9_])"

    reference        = ~r"[A-Za-z_][A-Za-z0-9_]*"

    _                = ~r"\s*"
    __               = ~r"\s+"
''')

# Applications nested deeper than this are rejected before parsing.
MAX_NESTING = 64

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
_TOKEN_END = re.compile(r"[\s()]")


def is_identifier(text: str) -> bool:
    return bool(_IDENTIFIER.match(text)) and text not in ("true", "false")


# ═══════════════════════════════════════════════════════════════════════════
# PARSE TREE -> EXPRESSION TREE
# ═══════════════════════════════════════════════════════════════════════════

class ExpressionBuilder(NodeVisitor):
    """Transforms the parsimonious parse tree into expression nodes."""

    grammar = EXPRESSION_GRAMMAR
    unwrapped_exceptions = (ConstgenError,)

    def __init__(self, operators: OperatorRegistry, source: str) -> None:
        self.operators = operators
        self.source = source

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_value(self, node, visited_children):
        _, expression, _ = visited_children
        return expression

    def visit_expression(self, node, visited_children):
        return visited_children[0]

    def visit_integer(self, node, visited_children):
        return visited_children[0]

    def visit_application(self, node, visited_children):
        _, _, operator, operands, _, _ = visited_children
        op = self.operators.get(operator.text)
        if op is None:
            raise ExpressionSyntaxError(
                f"Unknown operator {operator.text!r}",
                source=self.source,
                span=(operator.start, operator.end),
                hint="known operators: " + ", ".join(sorted(self.operators.names())),
            )
        if not op.accepts_count(len(operands)):
            raise ExpressionSyntaxError(
                f"Operator {op.name!r} takes {op.arity_text()} operand(s), "
                f"got {len(operands)}",
                source=self.source,
                span=(node.start, node.end),
            )
        return Apply(op.name, tuple(operands), span=(node.start, node.end))

    def visit_operands(self, node, visited_children):
        return [expression for _, expression in visited_children]

    def visit_operator(self, node, visited_children):
        return node

    def visit_boolean(self, node, visited_children):
        return Literal(Value.boolean(node.text == "true"), span=(node.start, node.end))

    def visit_binary_integer(self, node, visited_children):
        return self._integer(node, 0)

    def visit_octal_integer(self, node, visited_children):
        return self._integer(node, 0)

    def visit_hex_integer(self, node, visited_children):
        return self._integer(node, 0)

    def visit_decimal_integer(self, node, visited_children):
        return self._integer(node, 10)

    def visit_reference(self, node, visited_children):
        return Reference(node.text, span=(node.start, node.end))

    def _integer(self, node: Node, base: int) -> Literal:
        span = (node.start, node.end)
        raw = int(node.text.replace("_", ""), base)
        try:
            check_int128(raw, "integer literal")
        except ArithmeticOverflowError as exc:
            raise exc.attach(source=self.source, span=span)
        return Literal(Value.integer(raw), span=span)


# ═══════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════

def _token_span(text: str, pos: int) -> Span:
    if pos >= len(text):
        return (len(text), len(text) + 1)
    if text[pos] in "()":
        return (pos, pos + 1)
    match = _TOKEN_END.search(text, pos)
    return (pos, match.start() if match else len(text))


def _check_nesting(text: str) -> None:
    """Report empty input and unbalanced parentheses with precise spans."""
    if not text.strip():
        raise ExpressionSyntaxError("Empty expressions are not allowed",
                                    source=text, span=(0, max(1, len(text))))
    opened: List[int] = []
    for pos, char in enumerate(text):
        if char == "(":
            opened.append(pos)
            if len(opened) > MAX_NESTING:
                raise ExpressionSyntaxError(
                    f"Expression nests deeper than {MAX_NESTING} levels",
                    source=text, span=(pos, pos + 1),
                )
        elif char == ")":
            if not opened:
                raise ExpressionSyntaxError("Unmatched closing parenthesis",
                                            source=text, span=(pos, pos + 1))
            opened.pop()
    if opened:
        pos = opened[-1]
        raise ExpressionSyntaxError("Unmatched opening parenthesis",
                                    source=text, span=(pos, pos + 1))


def _describe_failure(text: str, pos: int) -> str:
    if pos >= len(text):
        return "Unexpected end of expression"
    before = text[:pos].rstrip()
    if before.endswith("("):
        if text[pos] == ")":
            return "Empty applications are not allowed"
        return "Only operators can be applied, expected an operator name"
    inside = text[:pos].count("(") > text[:pos].count(")")
    if inside and pos > 0 and not text[pos - 1].isspace() and text[pos] != ")":
        return "Operands must be separated by whitespace"
    start, end = _token_span(text, pos)
    return f"Unexpected {text[start:end]!r}"


def parse_expression(
    text: str,
    operators: Optional[OperatorRegistry] = None,
    *,
    constant: Optional[str] = None,
) -> Expression:
    """
    Parse value *text* into an expression tree.

    Raises :class:`ExpressionSyntaxError` for malformed nesting, empty input,
    stray tokens, unknown operators and operand counts outside an operator's
    arity.  The error carries the offending span of *text*.
    """
    registry = operators if operators is not None else default_registry()
    try:
        _check_nesting(text)
        tree = EXPRESSION_GRAMMAR.parse(text)
        expression = ExpressionBuilder(registry, text).visit(tree)
    except ParseError as exc:
        # IncompleteParseError included: pos is where matching stopped
        raise ExpressionSyntaxError(
            _describe_failure(text, exc.pos), source=text, span=_token_span(text, exc.pos),
            constant=constant,
        ) from None
    except ConstgenError as exc:
        raise exc.attach(constant=constant, source=text)
    logger.debug("parsed %r -> %r", text, expression)
    return expression


def literal_from_native(raw: Union[int, bool], *, constant: Optional[str] = None) -> Literal:
    """Wrap a native TOML integer or boolean as a :class:`Literal`."""
    if isinstance(raw, bool):
        return Literal(Value.boolean(raw))
    try:
        check_int128(raw, "integer literal")
    except ArithmeticOverflowError as exc:
        raise exc.attach(constant=constant, source=str(raw))
    return Literal(Value.integer(raw))
