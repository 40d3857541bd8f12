# tests/conftest.py
"""
Shared fixtures and sample documents for the constgen test suite.
"""

import textwrap

import pytest

from constgen.config import parse_constants, parse_options

try:
    import tomllib
except ModuleNotFoundError:  # Python 3.10
    import tomli as tomllib


# ═══════════════════════════════════════════════════════════════════════════
# SAMPLE DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════

OPTIONS_TOML = textwrap.dedent('''
    [codegen]
    enabled = ["nasm", "rust", "python", "json"]
    comment_sections = false

    [types.PhysAddr]
    kind = "integer"
    bits = 64

    [lang.nasm]
    file_ext = ".asm"
    template = "%define $name $value"
    comment = "; $comment"
    format.boolean = ["1", "0"]

    [lang.nasm.type.PhysAddr]
    format.integer = { radix = "hex", underscores = 4 }

    [lang.rust]
    file_ext = ".rs"
    template = "pub const $name: $type = $value;"
    import = "use $import;"
    comment = "// $comment"

    [lang.rust.type.PhysAddr]
    value_prefix = "PhysAddr::new("
    value_suffix = ")"
    format.integer = { radix = "hex", underscores = 4 }
    import = ["x86_64::PhysAddr"]

    [lang.rust.type.size_bytes]
    name = "u64"

    [lang.python]
    file_ext = ".py"
    template = "$name = $value"
    comment = "# $comment"
    format.boolean = ["True", "False"]

    [lang.json]
    file_ext = ".json"
    template = "\\"$name\\": $value,"
    intro = "{"
    outro = "\\"_end_\\": true}"
''')

CONSTANTS_TOML = textwrap.dedent('''
    [[constant]]
    name = "KERNEL_LOCATION"
    type = "PhysAddr"
    value = "0x100_0000"

    [[constant]]
    name = "KERNEL_SIZE_LIMIT"
    type = "size_bytes"
    value = "0x20_0000"

    [[constant]]
    name = "KERNEL_END"
    type = "PhysAddr"
    value = "(add KERNEL_LOCATION KERNEL_SIZE_LIMIT)"
    comment = "First byte after the kernel"

    [[constant]]
    name = "STACK_PAGES"
    type = "u64"
    value = 2

    [[constant]]
    name = "SMP"
    type = "bool"
    value = "(and true (lt STACK_PAGES 4))"
''')

# Expected values of CONSTANTS_TOML, in declaration order.
CONSTANT_VALUES = [
    ("KERNEL_LOCATION", 0x100_0000),
    ("KERNEL_SIZE_LIMIT", 0x20_0000),
    ("KERNEL_END", 0x120_0000),
    ("STACK_PAGES", 2),
    ("SMP", True),
]

CYCLIC_CONSTANTS_TOML = textwrap.dedent('''
    [[constant]]
    name = "A"
    type = "u32"
    value = "(add B 1)"

    [[constant]]
    name = "B"
    type = "u32"
    value = "(add A 1)"
''')


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def options():
    return parse_options(tomllib.loads(OPTIONS_TOML))


@pytest.fixture
def constants():
    return parse_constants(tomllib.loads(CONSTANTS_TOML))


@pytest.fixture
def project(tmp_path):
    """Options and constants written to files; returns (options, constants) paths."""
    options_path = tmp_path / "options.toml"
    constants_path = tmp_path / "constants.toml"
    options_path.write_text(OPTIONS_TOML, encoding="utf-8")
    constants_path.write_text(CONSTANTS_TOML, encoding="utf-8")
    return options_path, constants_path
