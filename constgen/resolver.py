"""
constgen/resolver.py
====================

Dependency resolution and evaluation of a constant set.

Pipeline
--------
    1. duplicate names            -> DuplicateConstantError
    2. dependency graph           (references in first-appearance order)
    3. reference validation       -> UnknownReferenceError
    4. cycle detection            -> CyclicDependencyError
    5. semantic type lookup       -> UnknownTypeError (strict typing only)
    6. topological order          (Kahn, ready set ordered by declaration)
    7. evaluation + type check    -> evaluation errors

Steps 1-5 are structural and finish before anything is evaluated.  All
traversals use explicit stacks, so deep reference chains never hit the
interpreter's recursion limit.  Nothing here mutates its inputs; the result
is a fresh :class:`ResolvedConstants`.
"""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from constgen.errors import (
    ConstgenError,
    CyclicDependencyError,
    DuplicateConstantError,
    ExpressionSyntaxError,
    UnknownReferenceError,
)
from constgen.expr import Expression, Literal, Reference, reference_nodes, references
from constgen.operators import Operator, OperatorRegistry, default_registry
from constgen.parser import parse_expression
from constgen.values import SemanticType, TypeRegistry, Value

__all__ = [
    "Constant",
    "ResolvedConstant",
    "ResolvedConstants",
    "DependencyGraph",
    "Resolver",
    "resolve",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# DATA MODEL
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Constant:
    """A declared constant: name, optional semantic type, value expression."""

    name: str
    type_name: Optional[str]
    expression: Expression
    comment: Optional[str] = None
    ordinal: int = 0
    source: str = field(default="", compare=False)

    @classmethod
    def parse(
        cls,
        name: str,
        type_name: Optional[str],
        value: str,
        *,
        comment: Optional[str] = None,
        ordinal: int = 0,
        operators: Optional[OperatorRegistry] = None,
    ) -> "Constant":
        expression = parse_expression(value, operators, constant=name)
        return cls(name, type_name, expression, comment, ordinal, value)


@dataclass(frozen=True)
class ResolvedConstant:
    constant: Constant
    value: Value
    semantic_type: Optional[SemanticType] = None

    @property
    def name(self) -> str:
        return self.constant.name

    @property
    def type_name(self) -> Optional[str]:
        return self.constant.type_name

    @property
    def comment(self) -> Optional[str]:
        return self.constant.comment


@dataclass(frozen=True)
class ResolvedConstants:
    """
    Output of resolution.

    Iterating yields :class:`ResolvedConstant` in declaration order; indexing
    by name yields the :class:`Value`.
    """

    constants: Tuple[ResolvedConstant, ...]
    values: Mapping[str, Value]
    evaluation_order: Tuple[str, ...]

    def __iter__(self) -> Iterator[ResolvedConstant]:
        return iter(self.constants)

    def __len__(self) -> int:
        return len(self.constants)

    def __getitem__(self, name: str) -> Value:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def names(self) -> List[str]:
        return [rc.name for rc in self.constants]


# ═══════════════════════════════════════════════════════════════════════════
# DEPENDENCY GRAPH
# ═══════════════════════════════════════════════════════════════════════════

_ON_STACK = 1
_DONE = 2


class DependencyGraph:
    """Edges from each constant to the constants its expression references."""

    def __init__(self, constants: Sequence[Constant]) -> None:
        self._constants: Dict[str, Constant] = {}
        for constant in constants:
            if constant.name in self._constants:
                raise DuplicateConstantError(constant.name, source=constant.source or None)
            self._constants[constant.name] = constant
        self._order: List[str] = list(self._constants)
        self._index: Dict[str, int] = {name: i for i, name in enumerate(self._order)}
        self._edges: Dict[str, List[str]] = {
            name: references(constant.expression)
            for name, constant in self._constants.items()
        }

    def dependencies(self, name: str) -> List[str]:
        return list(self._edges[name])

    def validate_references(self) -> None:
        for name in self._order:
            constant = self._constants[name]
            for ref in reference_nodes(constant.expression):
                if ref.name not in self._constants:
                    raise UnknownReferenceError(
                        ref.name, constant=name,
                        source=constant.source or None,
                        span=ref.span if constant.source else None,
                    )

    def find_cycle(self) -> Optional[List[str]]:
        """First cycle found by a DFS rooted in declaration order, or None."""
        state: Dict[str, int] = {}
        for root in self._order:
            if root in state:
                continue
            path: List[str] = [root]
            state[root] = _ON_STACK
            stack: List[Iterator[str]] = [iter(self._edges[root])]
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    stack.pop()
                    state[path.pop()] = _DONE
                    continue
                child_state = state.get(child)
                if child_state == _ON_STACK:
                    return path[path.index(child):]
                if child_state is None:
                    state[child] = _ON_STACK
                    path.append(child)
                    stack.append(iter(self._edges[child]))
        return None

    def evaluation_order(self) -> List[str]:
        """Kahn's algorithm; among ready constants the earliest declared wins."""
        in_degree: Dict[str, int] = {name: len(deps) for name, deps in self._edges.items()}
        dependents: Dict[str, List[str]] = defaultdict(list)
        for name, deps in self._edges.items():
            for dep in deps:
                dependents[dep].append(name)

        ready: List[Tuple[int, str]] = [
            (self._index[name], name) for name in self._order if in_degree[name] == 0
        ]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for dependent in dependents.get(name, []):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (self._index[dependent], dependent))

        if len(order) != len(self._order):
            done = set(order)
            raise CyclicDependencyError(
                self.find_cycle() or [n for n in self._order if n not in done]
            )
        return order


# ═══════════════════════════════════════════════════════════════════════════
# RESOLVER
# ═══════════════════════════════════════════════════════════════════════════

class Resolver:
    """Resolves and evaluates constant sets against one type/operator setup."""

    def __init__(
        self,
        types: Optional[TypeRegistry] = None,
        operators: Optional[OperatorRegistry] = None,
    ) -> None:
        self.types = types if types is not None else TypeRegistry()
        self.operators = operators if operators is not None else default_registry()

    def resolve(self, constants: Sequence[Constant]) -> ResolvedConstants:
        declared = sorted(constants, key=lambda c: c.ordinal)

        graph = DependencyGraph(declared)
        graph.validate_references()
        cycle = graph.find_cycle()
        if cycle is not None:
            raise CyclicDependencyError(cycle)

        semantic_types: Dict[str, Optional[SemanticType]] = {}
        for constant in declared:
            if constant.type_name is None:
                semantic_types[constant.name] = None
                continue
            try:
                semantic_types[constant.name] = self.types.lookup(constant.type_name)
            except ConstgenError as exc:
                raise exc.attach(constant=constant.name)

        order = graph.evaluation_order()
        by_name = {constant.name: constant for constant in declared}
        values: Dict[str, Value] = {}
        for name in order:
            constant = by_name[name]
            try:
                value = self.evaluate(constant.expression, values)
                semantic_type = semantic_types[name]
                if semantic_type is not None:
                    self.types.check(semantic_type, value)
            except ConstgenError as exc:
                raise exc.attach(constant=name, source=constant.source or None)
            values[name] = value
            logger.debug("resolved %s = %s", name, value)

        resolved = tuple(
            ResolvedConstant(constant, values[constant.name], semantic_types[constant.name])
            for constant in declared
        )
        logger.info("resolved %d constant(s)", len(resolved))
        return ResolvedConstants(resolved, MappingProxyType(dict(values)), tuple(order))

    def evaluate(self, expression: Expression, values: Mapping[str, Value]) -> Value:
        """
        Evaluate *expression*; every reference must already be in *values*.

        Post-order walk with an explicit stack.  Operands are evaluated left
        to right onto ``results``; an application pops its operands from
        there once all of them are done.
        """
        results: List[Value] = []
        stack: List[Tuple[Expression, Optional[Operator]]] = [(expression, None)]
        while stack:
            node, operator = stack.pop()
            if isinstance(node, Literal):
                results.append(node.value)
            elif isinstance(node, Reference):
                try:
                    results.append(values[node.name])
                except KeyError:
                    raise UnknownReferenceError(node.name, span=node.span) from None
            elif operator is None:
                operator = self.operators.get(node.operator)
                if operator is None:
                    raise ExpressionSyntaxError(
                        f"Unknown operator {node.operator!r}", span=node.span,
                    )
                stack.append((node, operator))
                stack.extend((operand, None) for operand in reversed(node.operands))
            else:
                split = len(results) - len(node.operands)
                operands = results[split:]
                del results[split:]
                try:
                    results.append(operator(operands))
                except ConstgenError as exc:
                    raise exc.attach(span=node.span)
        return results[0]


def resolve(
    constants: Sequence[Constant],
    types: Optional[TypeRegistry] = None,
    operators: Optional[OperatorRegistry] = None,
) -> ResolvedConstants:
    """Resolve *constants* with a one-off :class:`Resolver`."""
    return Resolver(types, operators).resolve(constants)
