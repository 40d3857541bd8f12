"""
constgen/config.py
==================

Loading of the options document and the constants document(s).

Options document
----------------
::

    [codegen]
    enabled = ["nasm", "rust"]        # profiles to generate, in this order
    comment_sections = true           # section/constant comments
    strict_types = false              # undeclared types are an error
    strict_formats = false            # every used type needs a profile entry

    [types.PhysAddr]                  # semantic type declarations
    kind = "integer"
    bits = 64
    signed = false

    [lang.rust]                       # one table per profile
    file_ext = ".rs"
    template = "pub const $name: $type = $value;"
    import = "use $import;"
    comment = "// $comment"
    intro = "..."
    outro = "..."
    formatter = ["rustfmt"]
    format.boolean = ["true", "false"]
    format.integer = { radix = "hex", underscores = 4, separator = "_",
                       zero_pad = 0, omit_prefix = false }

    [lang.rust.type.PhysAddr]         # per-type overrides
    name = "u64"
    value_prefix = "PhysAddr::new("
    value_suffix = ")"
    format.integer = { radix = "hex", underscores = 4 }
    import = ["x86_64::PhysAddr"]

Constants document
------------------
::

    [[constant]]
    name = "KERNEL_END"
    type = "PhysAddr"
    value = "(add KERNEL_LOCATION KERNEL_SIZE_LIMIT)"
    comment = "first byte after the kernel image"

``value`` may also be a native TOML integer or boolean.

Unknown keys anywhere are rejected with :class:`~constgen.errors.ConfigError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # Python 3.10
    import tomli as tomllib

from constgen.errors import ConfigError, ConstgenError
from constgen.formatting import Radix, TypeFormatRule
from constgen.operators import OperatorRegistry
from constgen.parser import is_identifier, literal_from_native
from constgen.profiles import Profile, ProfileRegistry
from constgen.resolver import Constant
from constgen.values import PrimitiveKind, SemanticType, TypeRegistry

__all__ = [
    "CodegenOptions",
    "Options",
    "load_options",
    "parse_options",
    "load_constants",
    "parse_constants",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_CODEGEN_KEYS = {"enabled", "comment_sections", "strict_types", "strict_formats"}
_TYPE_KEYS = {"kind", "bits", "signed"}
_LANG_KEYS = {"file_ext", "template", "import", "comment", "intro", "outro",
              "formatter", "format", "type"}
_LANG_TYPE_KEYS = {"name", "value_prefix", "value_suffix", "format", "import"}
_FORMAT_KEYS = {"boolean", "integer"}
_INTEGER_FORMAT_KEYS = {"radix", "underscores", "separator", "zero_pad", "omit_prefix"}
_CONSTANT_KEYS = {"name", "type", "value", "comment"}


# ═══════════════════════════════════════════════════════════════════════════
# OPTION MODEL
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CodegenOptions:
    enabled: Tuple[str, ...] = ()
    comment_sections: bool = False
    strict_types: bool = False
    strict_formats: bool = False


@dataclass(frozen=True)
class Options:
    """Everything the options document configures."""

    codegen: CodegenOptions = field(default_factory=CodegenOptions)
    types: TypeRegistry = field(default_factory=TypeRegistry)
    profiles: ProfileRegistry = field(default_factory=ProfileRegistry)

    def enabled_profiles(self) -> List[str]:
        """Enabled profile names; all profiles in document order when none are listed."""
        if self.codegen.enabled:
            return list(self.codegen.enabled)
        return self.profiles.names()


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

class _Reader:
    """Typed access to one TOML table with a dotted location for errors."""

    def __init__(self, table: Any, where: str, path: Optional[str],
                 allowed: Optional[set] = None) -> None:
        if not isinstance(table, Mapping):
            raise ConfigError(f"{where}: expected a table, got {type(table).__name__}", path=path)
        self.table = table
        self.where = where
        self.path = path
        if allowed is not None:
            unknown = sorted(set(table) - allowed)
            if unknown:
                raise ConfigError(
                    f"{where}: unknown key(s) " + ", ".join(repr(k) for k in unknown),
                    path=path,
                )

    def error(self, key: str, message: str) -> ConfigError:
        return ConfigError(f"{self.where}.{key}: {message}", path=self.path)

    def sub(self, key: str, allowed: Optional[set] = None) -> Optional["_Reader"]:
        if key not in self.table:
            return None
        return _Reader(self.table[key], f"{self.where}.{key}", self.path, allowed)

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.table.get(key, default)
        if value is not None and not isinstance(value, str):
            raise self.error(key, f"expected a string, got {value!r}")
        return value

    def require_str(self, key: str) -> str:
        value = self.get_str(key)
        if value is None:
            raise self.error(key, "is required")
        return value

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        value = self.table.get(key, default)
        if value is not None and not isinstance(value, bool):
            raise self.error(key, f"expected true or false, got {value!r}")
        return value

    def get_int(self, key: str, default: Optional[int] = None,
                minimum: int = 0) -> Optional[int]:
        value = self.table.get(key, default)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise self.error(key, f"expected an integer, got {value!r}")
        if value < minimum:
            raise self.error(key, f"must be at least {minimum}, got {value}")
        return value

    def get_str_list(self, key: str) -> Optional[Tuple[str, ...]]:
        value = self.table.get(key)
        if value is None:
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise self.error(key, f"expected a list of strings, got {value!r}")
        return tuple(value)


def _read_toml(path: PathLike) -> Dict[str, Any]:
    path = Path(path)
    logger.debug("reading %s", path)
    with path.open("rb") as fh:
        try:
            return tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}", path=str(path)) from None


# ═══════════════════════════════════════════════════════════════════════════
# OPTIONS
# ═══════════════════════════════════════════════════════════════════════════

def _parse_format(reader: Optional[_Reader]) -> TypeFormatRule:
    if reader is None:
        return TypeFormatRule()

    boolean: Optional[Tuple[str, str]] = None
    raw_boolean = reader.table.get("boolean")
    if raw_boolean is not None:
        if isinstance(raw_boolean, Mapping) and set(raw_boolean) == {"true", "false"}:
            raw_boolean = [raw_boolean["true"], raw_boolean["false"]]
        if (not isinstance(raw_boolean, list) or len(raw_boolean) != 2
                or not all(isinstance(v, str) for v in raw_boolean)):
            raise reader.error(
                "boolean", "expected [true-text, false-text] or {true = ..., false = ...}"
            )
        boolean = (raw_boolean[0], raw_boolean[1])

    integer = reader.sub("integer", _INTEGER_FORMAT_KEYS)
    radix: Optional[Radix] = None
    if integer is not None and "radix" in integer.table:
        try:
            radix = Radix.parse(integer.require_str("radix"))
        except ValueError as exc:
            raise integer.error("radix", str(exc)) from None

    return TypeFormatRule(
        radix=radix,
        group_width=integer.get_int("underscores") if integer else None,
        group_separator=integer.get_str("separator") if integer else None,
        zero_pad=integer.get_int("zero_pad") if integer else None,
        omit_prefix=integer.get_bool("omit_prefix") if integer else None,
        boolean=boolean,
    )


def _parse_lang_type(reader: _Reader) -> TypeFormatRule:
    rule = _parse_format(reader.sub("format", _FORMAT_KEYS))
    return rule.merged(TypeFormatRule(
        type_name=reader.get_str("name"),
        value_prefix=reader.get_str("value_prefix"),
        value_suffix=reader.get_str("value_suffix"),
        imports=reader.get_str_list("import"),
    ))


def _parse_profile(name: str, reader: _Reader) -> Profile:
    types: Dict[str, TypeFormatRule] = {}
    type_tables = reader.sub("type")
    if type_tables is not None:
        for type_name, table in type_tables.table.items():
            types[type_name] = _parse_lang_type(
                _Reader(table, f"{type_tables.where}.{type_name}", reader.path, _LANG_TYPE_KEYS)
            )

    formatter = reader.get_str_list("formatter")
    if formatter is not None and not formatter:
        raise reader.error("formatter", "must name a command")

    try:
        return Profile(
            name=name,
            file_ext=reader.require_str("file_ext"),
            template=reader.require_str("template"),
            import_template=reader.get_str("import"),
            comment_template=reader.get_str("comment"),
            intro=reader.get_str("intro"),
            outro=reader.get_str("outro"),
            formatter=formatter,
            defaults=_parse_format(reader.sub("format", _FORMAT_KEYS)),
            types=types,
        )
    except ConstgenError as exc:
        if isinstance(exc, ConfigError) and exc.path is None:
            exc.path = reader.path
        raise


def _parse_semantic_type(name: str, reader: _Reader) -> SemanticType:
    try:
        kind = PrimitiveKind.parse(reader.get_str("kind", "integer"))
    except ValueError as exc:
        raise reader.error("kind", str(exc)) from None
    try:
        return SemanticType(
            name,
            kind,
            bits=reader.get_int("bits", 64, minimum=1),
            signed=reader.get_bool("signed", False),
        )
    except ValueError as exc:
        raise reader.error("bits", str(exc)) from None


def parse_options(data: Mapping[str, Any], *, path: Optional[str] = None) -> Options:
    """Build :class:`Options` from an already decoded options document."""
    root = _Reader(data, "<options>", path, {"codegen", "types", "lang"})

    codegen_reader = root.sub("codegen", _CODEGEN_KEYS)
    if codegen_reader is None:
        codegen = CodegenOptions()
    else:
        codegen = CodegenOptions(
            enabled=codegen_reader.get_str_list("enabled") or (),
            comment_sections=codegen_reader.get_bool("comment_sections", False),
            strict_types=codegen_reader.get_bool("strict_types", False),
            strict_formats=codegen_reader.get_bool("strict_formats", False),
        )

    declared: List[SemanticType] = []
    types_reader = root.sub("types")
    if types_reader is not None:
        for name, table in types_reader.table.items():
            reader = _Reader(table, f"types.{name}", path, _TYPE_KEYS)
            declared.append(_parse_semantic_type(name, reader))

    profiles: List[Profile] = []
    lang_reader = root.sub("lang")
    if lang_reader is not None:
        for name, table in lang_reader.table.items():
            profiles.append(_parse_profile(name, _Reader(table, f"lang.{name}", path, _LANG_KEYS)))

    logger.debug("options: %d declared type(s), %d profile(s)", len(declared), len(profiles))
    return Options(
        codegen=codegen,
        types=TypeRegistry(declared, strict=codegen.strict_types),
        profiles=ProfileRegistry(profiles, require_type_coverage=codegen.strict_formats),
    )


def load_options(path: PathLike) -> Options:
    return parse_options(_read_toml(path), path=str(path))


# ═══════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

def parse_constants(
    data: Mapping[str, Any],
    *,
    path: Optional[str] = None,
    start_ordinal: int = 0,
    operators: Optional[OperatorRegistry] = None,
) -> List[Constant]:
    """Build :class:`Constant` records from a decoded constants document."""
    root = _Reader(data, "<constants>", path, {"constant"})
    entries = root.table.get("constant", [])
    if not isinstance(entries, list):
        raise root.error("constant", "expected an array of tables ([[constant]])")

    constants: List[Constant] = []
    for index, table in enumerate(entries):
        reader = _Reader(table, f"constant[{index}]", path, _CONSTANT_KEYS)
        name = reader.require_str("name")
        if not is_identifier(name):
            raise reader.error("name", f"{name!r} is not a valid identifier")
        type_name = reader.get_str("type")
        comment = reader.get_str("comment")
        ordinal = start_ordinal + index

        if "value" not in reader.table:
            raise reader.error("value", "is required")
        raw = reader.table["value"]
        if isinstance(raw, str):
            constant = Constant.parse(name, type_name, raw, comment=comment,
                                      ordinal=ordinal, operators=operators)
        elif isinstance(raw, (bool, int)):
            source = ("true" if raw else "false") if isinstance(raw, bool) else str(raw)
            constant = Constant(name, type_name, literal_from_native(raw, constant=name),
                                comment, ordinal, source)
        else:
            raise reader.error("value", f"expected a string, integer or boolean, got {raw!r}")
        constants.append(constant)

    logger.debug("%s: %d constant(s)", path or "<constants>", len(constants))
    return constants


def load_constants(
    paths: Sequence[PathLike],
    operators: Optional[OperatorRegistry] = None,
) -> List[Constant]:
    """Load and concatenate several constants documents, in order."""
    constants: List[Constant] = []
    for path in paths:
        constants.extend(parse_constants(
            _read_toml(path), path=str(path), start_ordinal=len(constants),
            operators=operators,
        ))
    return constants
