# constgen/errors.py
"""
constgen Error Types and Reporting
==================================

Every failure the toolchain can report is a :class:`ConstgenError`.  Errors
carry a structured :class:`ErrorCode`, the phase that raised them, and as
much locating context as is known at the raise site (constant name, profile
name, the value text and a span inside it).  Context is attached while the
error travels outwards: an operator only knows its operands, the resolver
knows which constant was being evaluated, the driver knows the profile.

Error Hierarchy
───────────────
┌──────────────────────────────────────────────────────────────────────┐
│  ConstgenError (base)                                                │
│  ├── ConfigError                  - bad options/constants documents  │
│  │   └── TemplateError            - unknown template parameters      │
│  ├── ExpressionSyntaxError        - malformed value text             │
│  ├── ResolutionError              - structural problems in the set   │
│  │   ├── DuplicateConstantError                                      │
│  │   ├── UnknownReferenceError                                       │
│  │   ├── CyclicDependencyError                                       │
│  │   └── UnknownTypeError                                            │
│  ├── EvaluationError              - computing a value failed         │
│  │   ├── OperatorTypeError                                           │
│  │   ├── ArithmeticOverflowError                                     │
│  │   ├── DivisionByZeroError                                         │
│  │   └── TypeMismatchError                                           │
│  ├── EmissionError                - rendering one profile failed     │
│  │   ├── UnknownProfileError                                         │
│  │   ├── UnknownTypeInProfileError                                   │
│  │   ├── ImportsNotSupportedError                                    │
│  │   └── TypeRequiredError                                           │
│  └── FormatterError               - external formatter failed        │
└──────────────────────────────────────────────────────────────────────┘

Error Codes
───────────
Codes follow the pattern ``CGEN-NNNN``:
  - 0001-0999: Configuration errors
  - 1000-1999: Expression syntax errors
  - 2000-2999: Resolution (graph) errors
  - 3000-3999: Evaluation errors
  - 4000-4999: Emission errors
  - 5000-5999: Driver errors
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Dict, List, Optional, Sequence, Tuple

__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "ErrorCodes",
    "ConstgenError",
    "ConfigError",
    "TemplateError",
    "ExpressionSyntaxError",
    "ResolutionError",
    "DuplicateConstantError",
    "UnknownReferenceError",
    "CyclicDependencyError",
    "UnknownTypeError",
    "EvaluationError",
    "OperatorTypeError",
    "ArithmeticOverflowError",
    "DivisionByZeroError",
    "TypeMismatchError",
    "EmissionError",
    "UnknownProfileError",
    "UnknownTypeInProfileError",
    "ImportsNotSupportedError",
    "TypeRequiredError",
    "FormatterError",
]

Span = Tuple[int, int]


# ═══════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    CONFIG = "config"            # Reading options / constants documents
    SYNTAX = "syntax"            # Parsing value expressions
    RESOLUTION = "resolution"    # Graph construction and validation
    EVALUATION = "evaluation"    # Computing constant values
    EMISSION = "emission"        # Rendering a profile
    DRIVER = "driver"            # Formatter subprocesses, output files


class ErrorCode:
    """
    Structured error code ``CGEN-NNNN``.

    The ``kind`` is the short, stable name of the failure (``UnknownReference``,
    ``CyclicDependency`` ...) reported to users next to the numeric code.
    """

    __slots__ = ("prefix", "number", "kind", "phase")

    def __init__(self, number: int, kind: str, phase: ErrorPhase,
                 prefix: str = "CGEN") -> None:
        self.prefix = prefix
        self.number = number
        self.kind = kind
        self.phase = phase

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.kind})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    # ── Configuration (0001-0999) ─────────────────────────────────────────
    INVALID_CONFIG = ErrorCode(1, "ConfigError", ErrorPhase.CONFIG)
    INVALID_TEMPLATE = ErrorCode(2, "TemplateError", ErrorPhase.CONFIG)

    # ── Syntax (1000-1999) ────────────────────────────────────────────────
    SYNTAX_ERROR = ErrorCode(1000, "SyntaxError", ErrorPhase.SYNTAX)

    # ── Resolution (2000-2999) ────────────────────────────────────────────
    DUPLICATE_CONSTANT = ErrorCode(2000, "DuplicateConstant", ErrorPhase.RESOLUTION)
    UNKNOWN_REFERENCE = ErrorCode(2001, "UnknownReference", ErrorPhase.RESOLUTION)
    CYCLIC_DEPENDENCY = ErrorCode(2002, "CyclicDependency", ErrorPhase.RESOLUTION)
    UNKNOWN_TYPE = ErrorCode(2003, "UnknownType", ErrorPhase.RESOLUTION)

    # ── Evaluation (3000-3999) ────────────────────────────────────────────
    INVALID_OPERAND = ErrorCode(3000, "InvalidOperand", ErrorPhase.EVALUATION)
    OPERATOR_TYPE = ErrorCode(3001, "OperatorTypeError", ErrorPhase.EVALUATION)
    ARITHMETIC_OVERFLOW = ErrorCode(3002, "ArithmeticOverflow", ErrorPhase.EVALUATION)
    DIVISION_BY_ZERO = ErrorCode(3003, "DivisionByZero", ErrorPhase.EVALUATION)
    TYPE_MISMATCH = ErrorCode(3004, "TypeMismatch", ErrorPhase.EVALUATION)

    # ── Emission (4000-4999) ──────────────────────────────────────────────
    UNKNOWN_PROFILE = ErrorCode(4000, "UnknownProfile", ErrorPhase.EMISSION)
    UNKNOWN_TYPE_IN_PROFILE = ErrorCode(4001, "UnknownTypeInProfile", ErrorPhase.EMISSION)
    IMPORTS_NOT_SUPPORTED = ErrorCode(4002, "ImportsNotSupported", ErrorPhase.EMISSION)
    TYPE_REQUIRED = ErrorCode(4003, "TypeRequired", ErrorPhase.EMISSION)

    # ── Driver (5000-5999) ────────────────────────────────────────────────
    FORMATTER_FAILED = ErrorCode(5000, "FormatterError", ErrorPhase.DRIVER)


# ═══════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════

class ConstgenError(Exception):
    """
    Base exception for all constgen errors.

    Attributes
    ----------
    message:
        Human readable description, without location context.
    code:
        The :class:`ErrorCode` classifying the failure.
    constant, profile:
        Names locating the failing declaration, when known.
    source, span:
        The value text of the constant and the offending ``(start, end)``
        offsets inside it, used to draw a caret line.
    """

    default_code: ErrorCode = ErrorCodes.INVALID_CONFIG

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        *,
        constant: Optional[str] = None,
        profile: Optional[str] = None,
        source: Optional[str] = None,
        span: Optional[Span] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.constant = constant
        self.profile = profile
        self.source = source
        self.span = span
        self.hint = hint
        self.notes: List[str] = []

    @property
    def kind(self) -> str:
        return self.code.kind

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    def attach(
        self,
        *,
        constant: Optional[str] = None,
        profile: Optional[str] = None,
        source: Optional[str] = None,
        span: Optional[Span] = None,
    ) -> "ConstgenError":
        """Fill in locating context that is still unknown; returns self."""
        if self.constant is None and constant is not None:
            self.constant = constant
        if self.profile is None and profile is not None:
            self.profile = profile
        if self.source is None and source is not None:
            self.source = source
        if self.span is None and span is not None:
            self.span = span
        return self

    def add_note(self, note: str) -> "ConstgenError":
        self.notes.append(note)
        return self

    def location(self) -> str:
        parts = []
        if self.profile is not None:
            parts.append(f"profile {self.profile!r}")
        if self.constant is not None:
            parts.append(f"constant {self.constant!r}")
        return ", ".join(parts) or "<constgen>"

    def format(self) -> str:
        """Format as a GCC-style diagnostic, with a caret line when possible."""
        lines = [f"{self.location()}: error: {self.message} [{self.code} {self.kind}]"]

        if self.source:
            lines.append(f"    {self.source}")
            if self.span is not None:
                start, end = self.span
                lines.append(f"    {' ' * start}{'^' * max(1, end - start)}")

        for note in self.notes:
            lines.append(f"note: {note}")
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def to_json(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "code": self.code.code,
            "kind": self.kind,
            "phase": self.phase.value,
            "message": self.message,
            "constant": self.constant,
            "profile": self.profile,
            "source": self.source,
            "span": list(self.span) if self.span is not None else None,
            "notes": list(self.notes),
            "hint": self.hint,
        }

    def __str__(self) -> str:
        return self.format()


# ───────────────────────────────────────────────────────────────────────────
# CONFIGURATION ERRORS
# ───────────────────────────────────────────────────────────────────────────

class ConfigError(ConstgenError):
    """Invalid options or constants document."""

    def __init__(self, message: str, *, path: Optional[str] = None,
                 **kwargs: Any) -> None:
        super().__init__(message, ErrorCodes.INVALID_CONFIG, **kwargs)
        self.path = path

    def location(self) -> str:
        context = super().location()
        if not self.path:
            return context
        if context == "<constgen>":
            return self.path
        return f"{self.path}: {context}"


class TemplateError(ConfigError):
    """A profile template uses a parameter its context cannot provide."""

    def __init__(self, message: str, *, template: str = "", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = ErrorCodes.INVALID_TEMPLATE
        self.template = template


# ───────────────────────────────────────────────────────────────────────────
# SYNTAX ERRORS
# ───────────────────────────────────────────────────────────────────────────

class ExpressionSyntaxError(ConstgenError):
    """Malformed value expression text."""

    default_code = ErrorCodes.SYNTAX_ERROR


# ───────────────────────────────────────────────────────────────────────────
# RESOLUTION ERRORS
# ───────────────────────────────────────────────────────────────────────────

class ResolutionError(ConstgenError):
    """Structural problem in the declared constant set."""

    default_code = ErrorCodes.UNKNOWN_REFERENCE


class DuplicateConstantError(ResolutionError):
    """Two constants share a name."""

    default_code = ErrorCodes.DUPLICATE_CONSTANT

    def __init__(self, name: str, **kwargs: Any) -> None:
        kwargs.setdefault("constant", name)
        super().__init__(f"Duplicate constant definition {name!r}", **kwargs)
        self.name = name


class UnknownReferenceError(ResolutionError):
    """A constant references a name that is not declared."""

    default_code = ErrorCodes.UNKNOWN_REFERENCE

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(f"Unknown reference {name!r}", **kwargs)
        self.name = name


class CyclicDependencyError(ResolutionError):
    """Constants depend on each other in a cycle."""

    default_code = ErrorCodes.CYCLIC_DEPENDENCY

    def __init__(self, cycle: Sequence[str], **kwargs: Any) -> None:
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        kwargs.setdefault("constant", self.cycle[0] if self.cycle else None)
        super().__init__(f"Cyclic dependency: {path}", **kwargs)


class UnknownTypeError(ResolutionError):
    """A constant uses a semantic type that was never declared."""

    default_code = ErrorCodes.UNKNOWN_TYPE

    def __init__(self, type_name: str, **kwargs: Any) -> None:
        super().__init__(f"Unknown type {type_name!r}", **kwargs)
        self.type_name = type_name


# ───────────────────────────────────────────────────────────────────────────
# EVALUATION ERRORS
# ───────────────────────────────────────────────────────────────────────────

class EvaluationError(ConstgenError):
    """Computing a constant's value failed."""

    default_code = ErrorCodes.INVALID_OPERAND


class OperatorTypeError(EvaluationError):
    """Operand kinds do not match what the operator accepts."""

    default_code = ErrorCodes.OPERATOR_TYPE

    def __init__(self, operator: str, message: str, **kwargs: Any) -> None:
        super().__init__(f"Operator {operator!r}: {message}", **kwargs)
        self.operator = operator


class ArithmeticOverflowError(EvaluationError):
    """An integer left the representable range."""

    default_code = ErrorCodes.ARITHMETIC_OVERFLOW


class DivisionByZeroError(EvaluationError):
    """Integer division or modulo by zero."""

    default_code = ErrorCodes.DIVISION_BY_ZERO

    def __init__(self, operator: str, **kwargs: Any) -> None:
        super().__init__(f"Division by zero in {operator!r}", **kwargs)
        self.operator = operator


class TypeMismatchError(EvaluationError):
    """A value's primitive kind does not match its declared type."""

    default_code = ErrorCodes.TYPE_MISMATCH


# ───────────────────────────────────────────────────────────────────────────
# EMISSION ERRORS
# ───────────────────────────────────────────────────────────────────────────

class EmissionError(ConstgenError):
    """Rendering one profile failed."""

    default_code = ErrorCodes.UNKNOWN_PROFILE


class UnknownProfileError(EmissionError):
    """No profile with the requested name is registered."""

    default_code = ErrorCodes.UNKNOWN_PROFILE

    def __init__(self, name: str, known: Sequence[str] = (), **kwargs: Any) -> None:
        kwargs.setdefault("profile", name)
        super().__init__(f"Unknown profile {name!r}", **kwargs)
        self.name = name
        if known:
            self.hint = "registered profiles: " + ", ".join(sorted(known))


class UnknownTypeInProfileError(EmissionError):
    """Strict coverage is on and a profile has no rule for a used type."""

    default_code = ErrorCodes.UNKNOWN_TYPE_IN_PROFILE

    def __init__(self, type_name: str, **kwargs: Any) -> None:
        super().__init__(f"No formatting rule for type {type_name!r}", **kwargs)
        self.type_name = type_name


class ImportsNotSupportedError(EmissionError):
    """Types need imports but the profile has no import template."""

    default_code = ErrorCodes.IMPORTS_NOT_SUPPORTED

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(
            "Profile does not specify import syntax, but imports are required",
            **kwargs,
        )


class TypeRequiredError(EmissionError):
    """The statement template uses ``$type`` but the constant has no type."""

    default_code = ErrorCodes.TYPE_REQUIRED

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(
            "Profile requires types, but the constant does not declare one",
            **kwargs,
        )


# ───────────────────────────────────────────────────────────────────────────
# DRIVER ERRORS
# ───────────────────────────────────────────────────────────────────────────

class FormatterError(ConstgenError):
    """An external formatter is missing, timed out or failed."""

    default_code = ErrorCodes.FORMATTER_FAILED

    def __init__(self, message: str, *, command: Sequence[str] = (),
                 **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.command = list(command)
