"""
constgen
========

Constant resolution and multi-profile emission.

One TOML source declares named, typed constants whose values may reference
each other through a small prefix expression language::

    [[constant]]
    name = "KERNEL_END"
    type = "PhysAddr"
    value = "(add KERNEL_LOCATION KERNEL_SIZE_LIMIT)"

constgen resolves the set once and renders it through any number of
*profiles* (assembly, Rust, Python, JSON ...), each with its own statement
template and literal formatting rules.

Quick start::

    from constgen import Constant, ProfileRegistry, Profile, resolve, emit

    constants = [
        Constant.parse("A", "u32", "4096", ordinal=0),
        Constant.parse("B", "u32", "(add A 16)", ordinal=1),
    ]
    registry = ProfileRegistry([Profile("c", ".h", "#define $name $value")])
    print(emit(resolve(constants), "c", registry).text)
"""

__version__ = "0.3.0"

from constgen.errors import ConstgenError
from constgen.values import PrimitiveKind, SemanticType, TypeRegistry, Value
from constgen.expr import Apply, Expression, Literal, Reference
from constgen.operators import Operator, OperatorRegistry, default_registry
from constgen.parser import parse_expression
from constgen.resolver import Constant, ResolvedConstants, Resolver, resolve
from constgen.formatting import Radix, TypeFormatRule
from constgen.profiles import Profile, ProfileRegistry
from constgen.emitter import Artifact, Emitter, emit

__all__ = [
    "__version__",
    "ConstgenError",
    "PrimitiveKind",
    "SemanticType",
    "TypeRegistry",
    "Value",
    "Apply",
    "Expression",
    "Literal",
    "Reference",
    "Operator",
    "OperatorRegistry",
    "default_registry",
    "parse_expression",
    "Constant",
    "ResolvedConstants",
    "Resolver",
    "resolve",
    "Radix",
    "TypeFormatRule",
    "Profile",
    "ProfileRegistry",
    "Artifact",
    "Emitter",
    "emit",
]
