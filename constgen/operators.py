"""
constgen/operators.py
=====================

The operator registry used by the parser (name and arity checks) and the
evaluator (operand kinds and evaluation).

Each :class:`Operator` is a plain registry entry: adding an operator means
registering one more entry, the parser and evaluator need no changes.

Builtin operators
-----------------
    =========  =======  =========  ==========================================
    name       arity    operands   result
    =========  =======  =========  ==========================================
    not        1        boolean    logical negation
    and        >= 1     boolean    true when all operands are true
    or         >= 1     boolean    true when any operand is true
    xor        >= 1     boolean    true when an odd number are true
    add        >= 2     integer    sum
    sub        >= 2     integer    left fold of subtraction
    mul        >= 2     integer    product
    div        2        integer    quotient, truncated toward zero
    mod        2        integer    remainder, sign of the dividend
    shl        2        integer    left shift by a non-negative count
    shr        2        integer    arithmetic right shift
    bitand     >= 2     integer    bitwise and
    bitor      >= 2     integer    bitwise or
    bitxor     >= 2     integer    bitwise exclusive or
    min        >= 1     integer    smallest operand
    max        >= 1     integer    largest operand
    eq         2        any        equality of two same-kind operands
    lt         2        integer    a < b
    le         2        integer    a <= b
    =========  =======  =========  ==========================================

Every integer result is checked against the signed 128-bit range after each
step of a fold; nothing ever wraps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import reduce
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
)

from constgen.errors import (
    ArithmeticOverflowError,
    DivisionByZeroError,
    EvaluationError,
    OperatorTypeError,
)
from constgen.values import PrimitiveKind, Value, check_int128

__all__ = [
    "Operator",
    "OperatorRegistry",
    "BUILTIN_OPERATORS",
    "default_registry",
]

INTEGER_ONLY = frozenset({PrimitiveKind.INTEGER})
BOOLEAN_ONLY = frozenset({PrimitiveKind.BOOLEAN})
ANY_KIND = frozenset(PrimitiveKind)

# Shifts by this much or more overflow any non-zero 128-bit operand.
_MAX_SHIFT = 128


@dataclass(frozen=True)
class Operator:
    """A named operator with static arity and accepted operand kinds."""

    name: str
    min_args: int
    max_args: Optional[int]
    accepts: FrozenSet[PrimitiveKind]
    evaluate: Callable[[Sequence[Value]], Value] = field(compare=False, repr=False)
    description: str = ""

    def accepts_count(self, count: int) -> bool:
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args

    def arity_text(self) -> str:
        if self.max_args is None:
            return f"at least {self.min_args}"
        if self.max_args == self.min_args:
            return f"exactly {self.min_args}"
        return f"between {self.min_args} and {self.max_args}"

    def check_operands(self, operands: Sequence[Value]) -> None:
        if not self.accepts_count(len(operands)):
            raise OperatorTypeError(
                self.name,
                f"takes {self.arity_text()} operand(s), got {len(operands)}",
            )
        for position, operand in enumerate(operands, start=1):
            if operand.kind not in self.accepts:
                expected = " or ".join(sorted(k.value for k in self.accepts))
                raise OperatorTypeError(
                    self.name,
                    f"operand {position} must be {expected}, got "
                    f"{operand.kind.value} {operand}",
                )

    def __call__(self, operands: Sequence[Value]) -> Value:
        self.check_operands(operands)
        return self.evaluate(operands)


class OperatorRegistry:
    """Name -> :class:`Operator` table."""

    def __init__(self, operators: Iterable[Operator] = ()) -> None:
        self._operators: Dict[str, Operator] = {}
        for op in operators:
            self.register(op)

    def register(self, op: Operator) -> Operator:
        if op.name in self._operators:
            raise ValueError(f"operator {op.name!r} is already registered")
        self._operators[op.name] = op
        return op

    def get(self, name: str) -> Optional[Operator]:
        return self._operators.get(name)

    def __getitem__(self, name: str) -> Operator:
        return self._operators[name]

    def __contains__(self, name: object) -> bool:
        return name in self._operators

    def __iter__(self) -> Iterator[Operator]:
        return iter(self._operators.values())

    def __len__(self) -> int:
        return len(self._operators)

    def names(self) -> List[str]:
        return list(self._operators)


# ═══════════════════════════════════════════════════════════════════════════
# EVALUATION HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _int(raw: int, name: str) -> Value:
    return Value.integer(check_int128(raw, f"result of {name!r}"))


def _int_fold(name: str, step: Callable[[int, int], int]) -> Callable[[Sequence[Value]], Value]:
    def evaluate(operands: Sequence[Value]) -> Value:
        acc = operands[0].raw
        for operand in operands[1:]:
            acc = check_int128(step(acc, operand.raw), f"result of {name!r}")
        return Value.integer(acc)
    return evaluate


def _trunc_divmod(a: int, b: int, name: str):
    if b == 0:
        raise DivisionByZeroError(name)
    quotient = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        quotient = -quotient
    return quotient, a - b * quotient


def _div(operands: Sequence[Value]) -> Value:
    quotient, _ = _trunc_divmod(operands[0].raw, operands[1].raw, "div")
    return _int(quotient, "div")


def _mod(operands: Sequence[Value]) -> Value:
    _, remainder = _trunc_divmod(operands[0].raw, operands[1].raw, "mod")
    return _int(remainder, "mod")


def _shift_count(operands: Sequence[Value], name: str) -> int:
    count = operands[1].raw
    if count < 0:
        raise EvaluationError(f"Operator {name!r}: shift count must be non-negative, got {count}")
    return count


def _shl(operands: Sequence[Value]) -> Value:
    value = operands[0].raw
    count = _shift_count(operands, "shl")
    if value != 0 and count >= _MAX_SHIFT:
        raise ArithmeticOverflowError(
            f"result of 'shl' does not fit in a signed 128-bit integer ({value} << {count})"
        )
    return _int(value << count, "shl")


def _shr(operands: Sequence[Value]) -> Value:
    count = min(_shift_count(operands, "shr"), _MAX_SHIFT)
    return Value.integer(operands[0].raw >> count)


def _xor(operands: Sequence[Value]) -> Value:
    return Value.boolean(reduce(lambda acc, v: acc != v.raw, operands, False))


def _eq(operands: Sequence[Value]) -> Value:
    left, right = operands
    if left.kind is not right.kind:
        raise OperatorTypeError(
            "eq",
            f"operands must be of the same kind, got {left.kind.value} "
            f"and {right.kind.value}",
        )
    return Value.boolean(left.raw == right.raw)


BUILTIN_OPERATORS: List[Operator] = [
    Operator("not", 1, 1, BOOLEAN_ONLY,
             lambda ops: Value.boolean(not ops[0].raw), "logical negation"),
    Operator("and", 1, None, BOOLEAN_ONLY,
             lambda ops: Value.boolean(all(v.raw for v in ops)), "logical and"),
    Operator("or", 1, None, BOOLEAN_ONLY,
             lambda ops: Value.boolean(any(v.raw for v in ops)), "logical or"),
    Operator("xor", 1, None, BOOLEAN_ONLY, _xor, "logical exclusive or"),
    Operator("add", 2, None, INTEGER_ONLY, _int_fold("add", lambda a, b: a + b), "sum"),
    Operator("sub", 2, None, INTEGER_ONLY, _int_fold("sub", lambda a, b: a - b),
             "left fold of subtraction"),
    Operator("mul", 2, None, INTEGER_ONLY, _int_fold("mul", lambda a, b: a * b), "product"),
    Operator("div", 2, 2, INTEGER_ONLY, _div, "quotient truncated toward zero"),
    Operator("mod", 2, 2, INTEGER_ONLY, _mod, "remainder with the sign of the dividend"),
    Operator("shl", 2, 2, INTEGER_ONLY, _shl, "left shift"),
    Operator("shr", 2, 2, INTEGER_ONLY, _shr, "arithmetic right shift"),
    Operator("bitand", 2, None, INTEGER_ONLY, _int_fold("bitand", lambda a, b: a & b),
             "bitwise and"),
    Operator("bitor", 2, None, INTEGER_ONLY, _int_fold("bitor", lambda a, b: a | b),
             "bitwise or"),
    Operator("bitxor", 2, None, INTEGER_ONLY, _int_fold("bitxor", lambda a, b: a ^ b),
             "bitwise exclusive or"),
    Operator("min", 1, None, INTEGER_ONLY,
             lambda ops: Value.integer(min(v.raw for v in ops)), "smallest operand"),
    Operator("max", 1, None, INTEGER_ONLY,
             lambda ops: Value.integer(max(v.raw for v in ops)), "largest operand"),
    Operator("eq", 2, 2, ANY_KIND, _eq, "equality"),
    Operator("lt", 2, 2, INTEGER_ONLY,
             lambda ops: Value.boolean(ops[0].raw < ops[1].raw), "less than"),
    Operator("le", 2, 2, INTEGER_ONLY,
             lambda ops: Value.boolean(ops[0].raw <= ops[1].raw), "less than or equal"),
]


def default_registry() -> OperatorRegistry:
    """A fresh registry holding the builtin operators."""
    return OperatorRegistry(BUILTIN_OPERATORS)
