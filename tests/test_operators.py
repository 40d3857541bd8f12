# tests/test_operators.py
"""
Tests for the builtin operator registry.
"""

import pytest

from constgen.errors import (
    ArithmeticOverflowError,
    DivisionByZeroError,
    EvaluationError,
    OperatorTypeError,
)
from constgen.operators import Operator, OperatorRegistry, default_registry, BOOLEAN_ONLY
from constgen.values import INT128_MAX, INT128_MIN, Value


@pytest.fixture(scope="module")
def ops():
    return default_registry()


def I(raw):
    return Value.integer(raw)


def B(raw):
    return Value.boolean(raw)


class TestBooleanOperators:

    @pytest.mark.parametrize("name, args, expected", [
        ("not", [True], False),
        ("not", [False], True),
        ("and", [True], True),
        ("and", [True, True, False], False),
        ("or", [False], False),
        ("or", [False, False, True], True),
        ("xor", [True, True], False),
        ("xor", [True, True, True], True),
    ])
    def test_truth_tables(self, ops, name, args, expected):
        assert ops[name]([B(a) for a in args]) == B(expected)

    def test_integer_operand_rejected(self, ops):
        with pytest.raises(OperatorTypeError, match="operand 2 must be boolean"):
            ops["and"]([B(True), I(1)])


class TestIntegerOperators:

    @pytest.mark.parametrize("name, args, expected", [
        ("add", [1, 2, 3], 6),
        ("sub", [10, 3, 2], 5),
        ("mul", [2, 3, 4], 24),
        ("div", [7, 2], 3),
        ("div", [-7, 2], -3),
        ("div", [7, -2], -3),
        ("mod", [7, 3], 1),
        ("mod", [-7, 3], -1),
        ("mod", [7, -3], 1),
        ("shl", [1, 12], 4096),
        ("shr", [4096, 4], 256),
        ("shr", [-16, 2], -4),
        ("shr", [5, 500], 0),
        ("bitand", [0b1100, 0b1010], 0b1000),
        ("bitor", [0b1100, 0b1010], 0b1110),
        ("bitxor", [0b1100, 0b1010], 0b0110),
        ("min", [5, -2, 9], -2),
        ("max", [5, -2, 9], 9),
        ("min", [5], 5),
    ])
    def test_results(self, ops, name, args, expected):
        assert ops[name]([I(a) for a in args]) == I(expected)

    @pytest.mark.parametrize("name, args, expected", [
        ("lt", [1, 2], True),
        ("lt", [2, 2], False),
        ("le", [2, 2], True),
        ("eq", [3, 3], True),
        ("eq", [3, 4], False),
    ])
    def test_comparisons(self, ops, name, args, expected):
        assert ops[name]([I(a) for a in args]) == B(expected)

    def test_eq_booleans(self, ops):
        assert ops["eq"]([B(True), B(True)]) == B(True)

    def test_eq_mixed_kinds(self, ops):
        with pytest.raises(OperatorTypeError, match="same kind"):
            ops["eq"]([I(1), B(True)])

    def test_boolean_operand_rejected(self, ops):
        with pytest.raises(OperatorTypeError, match="operand 1 must be integer"):
            ops["add"]([B(True), I(1)])

    @pytest.mark.parametrize("name", ["div", "mod"])
    def test_division_by_zero(self, ops, name):
        with pytest.raises(DivisionByZeroError):
            ops[name]([I(1), I(0)])

    def test_negative_shift(self, ops):
        with pytest.raises(EvaluationError, match="non-negative"):
            ops["shl"]([I(1), I(-1)])


class TestOverflow:

    def test_add_overflow(self, ops):
        with pytest.raises(ArithmeticOverflowError):
            ops["add"]([I(INT128_MAX), I(1)])

    def test_sub_overflow(self, ops):
        with pytest.raises(ArithmeticOverflowError):
            ops["sub"]([I(INT128_MIN), I(1)])

    def test_mul_overflow(self, ops):
        with pytest.raises(ArithmeticOverflowError):
            ops["mul"]([I(2**64), I(2**64)])

    def test_intermediate_overflow_is_detected(self, ops):
        # the final sum would fit, the running total does not
        with pytest.raises(ArithmeticOverflowError):
            ops["add"]([I(INT128_MAX), I(1), I(-5)])

    def test_shl_overflow(self, ops):
        with pytest.raises(ArithmeticOverflowError):
            ops["shl"]([I(1), I(127)])
        with pytest.raises(ArithmeticOverflowError):
            ops["shl"]([I(1), I(10**9)])

    def test_shl_zero_by_huge(self, ops):
        assert ops["shl"]([I(0), I(10**9)]) == I(0)

    def test_div_overflow(self, ops):
        with pytest.raises(ArithmeticOverflowError):
            ops["div"]([I(INT128_MIN), I(-1)])


class TestRegistry:

    def test_builtin_names(self, ops):
        assert set(ops.names()) >= {"not", "and", "or", "add", "mul", "sub", "div", "eq"}

    def test_arity_text(self, ops):
        assert ops["not"].arity_text() == "exactly 1"
        assert ops["add"].arity_text() == "at least 2"

    def test_duplicate_registration(self):
        registry = default_registry()
        with pytest.raises(ValueError):
            registry.register(registry["add"])

    def test_custom_operator(self):
        registry = OperatorRegistry([
            Operator("nand", 2, 2, BOOLEAN_ONLY,
                     lambda ops: Value.boolean(not (ops[0].raw and ops[1].raw))),
        ])
        assert registry["nand"]([B(True), B(True)]) == B(False)
        assert "add" not in registry
