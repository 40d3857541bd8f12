# tests/test_config.py
"""
Tests for the options and constants documents.
"""

import textwrap

import pytest

from constgen.config import (
    CodegenOptions,
    load_constants,
    load_options,
    parse_constants,
    parse_options,
)
from constgen.errors import ConfigError, ExpressionSyntaxError, TemplateError
from constgen.expr import Apply, Literal
from constgen.formatting import Radix, TypeFormatRule
from constgen.values import PrimitiveKind, Value


def lang(name="plain", **entries):
    table = {"file_ext": ".txt", "template": "$name = $value"}
    table.update(entries)
    return {"lang": {name: table}}


class TestOptions:

    def test_sample_document(self, options):
        assert options.codegen == CodegenOptions(
            enabled=("nasm", "rust", "python", "json"),
            comment_sections=False,
        )
        assert options.profiles.names() == ["nasm", "rust", "python", "json"]
        assert options.enabled_profiles() == ["nasm", "rust", "python", "json"]

    def test_profile_fields(self, options):
        rust = options.profiles.get("rust")
        assert rust.file_ext == ".rs"
        assert rust.import_template == "use $import;"
        assert rust.types["PhysAddr"] == TypeFormatRule(
            radix=Radix.HEXADECIMAL,
            group_width=4,
            value_prefix="PhysAddr::new(",
            value_suffix=")",
            imports=("x86_64::PhysAddr",),
        )
        assert rust.types["size_bytes"] == TypeFormatRule(type_name="u64")

    def test_profile_defaults(self, options):
        assert options.profiles.get("nasm").defaults == TypeFormatRule(boolean=("1", "0"))
        assert options.profiles.get("json").intro == "{"

    def test_declared_types(self, options):
        assert "PhysAddr" in options.types
        assert options.types.lookup("PhysAddr").kind is PrimitiveKind.INTEGER

    def test_empty_document(self):
        options = parse_options({})
        assert options.codegen == CodegenOptions()
        assert len(options.profiles) == 0
        assert options.enabled_profiles() == []

    def test_enabled_defaults_to_all_profiles(self):
        data = lang("a")
        data["lang"]["b"] = {"file_ext": ".b", "template": "$name"}
        assert parse_options(data).enabled_profiles() == ["a", "b"]

    def test_strict_flags(self):
        data = lang()
        data["codegen"] = {"strict_types": True, "strict_formats": True}
        options = parse_options(data)
        assert options.types.strict
        assert options.profiles.require_type_coverage

    def test_integer_format(self):
        data = lang(format={"integer": {
            "radix": "bin", "underscores": 8, "separator": "'",
            "zero_pad": 16, "omit_prefix": True,
        }})
        assert parse_options(data).profiles.get("plain").defaults == TypeFormatRule(
            radix=Radix.BINARY, group_width=8, group_separator="'",
            zero_pad=16, omit_prefix=True,
        )

    def test_boolean_table_form(self):
        data = lang(format={"boolean": {"true": "on", "false": "off"}})
        assert parse_options(data).profiles.get("plain").defaults.boolean == ("on", "off")

    def test_formatter(self):
        data = lang(formatter=["rustfmt", "--edition", "2021"])
        assert parse_options(data).profiles.get("plain").formatter == (
            "rustfmt", "--edition", "2021",
        )

    def test_semantic_type(self):
        options = parse_options({"types": {"Flag": {"kind": "bool"},
                                           "Offset": {"bits": 32, "signed": True}}})
        assert options.types.lookup("Flag").kind is PrimitiveKind.BOOLEAN
        offset = options.types.lookup("Offset")
        assert (offset.bits, offset.signed) == (32, True)


class TestOptionErrors:

    @pytest.mark.parametrize("data, fragment", [
        ({"langs": {}}, "'langs'"),
        ({"codegen": {"enable": []}}, "'enable'"),
        (lang(bogus=1), "lang.plain: unknown key(s) 'bogus'"),
        (lang(type={"X": {"radix": "hex"}}), "lang.plain.type.X"),
        (lang(format={"integer": {"base": 16}}), "'base'"),
        ({"types": {"T": {"width": 8}}}, "types.T"),
    ], ids=["root", "codegen", "lang", "lang-type", "integer-format", "types"])
    def test_unknown_keys(self, data, fragment):
        with pytest.raises(ConfigError, match="unknown key") as info:
            parse_options(data)
        assert fragment in info.value.message

    def test_bad_radix(self):
        with pytest.raises(ConfigError, match="unknown radix"):
            parse_options(lang(format={"integer": {"radix": "base64"}}))

    @pytest.mark.parametrize("value", [["1"], ["1", "0", "2"], [1, 0], "yes"])
    def test_bad_boolean_spelling(self, value):
        with pytest.raises(ConfigError, match="boolean"):
            parse_options(lang(format={"boolean": value}))

    def test_missing_template(self):
        with pytest.raises(ConfigError, match="template: is required"):
            parse_options({"lang": {"x": {"file_ext": ".x"}}})

    def test_wrong_value_type(self):
        with pytest.raises(ConfigError, match="expected a string"):
            parse_options(lang(file_ext=3))

    def test_negative_group_width(self):
        with pytest.raises(ConfigError, match="at least 0"):
            parse_options(lang(format={"integer": {"underscores": -1}}))

    def test_bad_bits(self):
        with pytest.raises(ConfigError, match="types.T.bits"):
            parse_options({"types": {"T": {"bits": 256}}})

    def test_bad_kind(self):
        with pytest.raises(ConfigError, match="types.T.kind"):
            parse_options({"types": {"T": {"kind": "float"}}})

    def test_empty_formatter(self):
        with pytest.raises(ConfigError, match="must name a command"):
            parse_options(lang(formatter=[]))

    def test_template_error_carries_path(self):
        with pytest.raises(TemplateError) as info:
            parse_options(lang(template="$name = $vlaue"), path="options.toml")
        assert info.value.path == "options.toml"
        assert info.value.profile == "plain"

    def test_error_location_includes_path(self):
        with pytest.raises(ConfigError) as info:
            parse_options(lang(bogus=1), path="options.toml")
        assert info.value.format().startswith("options.toml: error:")


class TestConstants:

    def test_sample_document(self, constants):
        assert [c.name for c in constants] == [
            "KERNEL_LOCATION", "KERNEL_SIZE_LIMIT", "KERNEL_END", "STACK_PAGES", "SMP",
        ]
        assert [c.ordinal for c in constants] == [0, 1, 2, 3, 4]
        assert constants[2].comment == "First byte after the kernel"
        assert isinstance(constants[2].expression, Apply)

    def test_native_values(self):
        [number, flag] = parse_constants({"constant": [
            {"name": "N", "value": 12},
            {"name": "F", "type": "bool", "value": True},
        ]})
        assert number.expression == Literal(Value.integer(12))
        assert number.source == "12"
        assert number.type_name is None
        assert flag.expression == Literal(Value.boolean(True))
        assert flag.source == "true"

    def test_empty_document(self):
        assert parse_constants({}) == []

    def test_start_ordinal(self):
        [constant] = parse_constants({"constant": [{"name": "A", "value": 1}]},
                                     start_ordinal=7)
        assert constant.ordinal == 7

    @pytest.mark.parametrize("entry, fragment", [
        ({"value": 1}, "name: is required"),
        ({"name": "A"}, "value: is required"),
        ({"name": "not-valid", "value": 1}, "not a valid identifier"),
        ({"name": "A", "value": 1.5}, "expected a string, integer or boolean"),
        ({"name": "A", "value": 1, "unit": "bytes"}, "unknown key(s) 'unit'"),
        ({"name": "A", "type": 8, "value": 1}, "expected a string"),
    ], ids=["no-name", "no-value", "bad-name", "float", "unknown-key", "bad-type"])
    def test_errors(self, entry, fragment):
        with pytest.raises(ConfigError) as info:
            parse_constants({"constant": [entry]}, path="c.toml")
        assert fragment in info.value.message
        assert info.value.path == "c.toml"

    def test_constant_must_be_array(self):
        with pytest.raises(ConfigError, match=r"\[\[constant\]\]"):
            parse_constants({"constant": {"name": "A"}})

    def test_expression_syntax_error(self):
        with pytest.raises(ExpressionSyntaxError) as info:
            parse_constants({"constant": [{"name": "X", "value": "(add 1"}]})
        assert info.value.constant == "X"


class TestFiles:

    def test_load_project(self, project):
        options_path, constants_path = project
        options = load_options(options_path)
        constants = load_constants([constants_path])
        assert options.enabled_profiles() == ["nasm", "rust", "python", "json"]
        assert len(constants) == 5

    def test_multiple_constants_files(self, tmp_path):
        first = tmp_path / "a.toml"
        second = tmp_path / "b.toml"
        first.write_text('[[constant]]\nname = "A"\nvalue = 1\n', encoding="utf-8")
        second.write_text(textwrap.dedent('''
            [[constant]]
            name = "B"
            value = "(add A 1)"
        '''), encoding="utf-8")
        constants = load_constants([first, second])
        assert [(c.name, c.ordinal) for c in constants] == [("A", 0), ("B", 1)]

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[lang\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid TOML") as info:
            load_options(path)
        assert info.value.path == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_options(tmp_path / "absent.toml")
