# tests/test_cli.py
"""
Tests for the command-line interface and the generation driver.
"""

import json
import sys

import pytest

from constgen.driver import Generator, run_formatter, write_artifact
from constgen.emitter import Artifact
from constgen.errors import FormatterError
from constgen.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main
from tests.conftest import CYCLIC_CONSTANTS_TOML, OPTIONS_TOML

RUST_TEXT = (
    "use x86_64::PhysAddr;\n"
    "\n"
    "pub const KERNEL_LOCATION: PhysAddr = PhysAddr::new(0x100_0000);\n"
    "pub const KERNEL_SIZE_LIMIT: u64 = 2097152;\n"
    "pub const KERNEL_END: PhysAddr = PhysAddr::new(0x120_0000);\n"
    "pub const STACK_PAGES: u64 = 2;\n"
    "pub const SMP: bool = true;\n"
)

UPPERCASE = "import sys; sys.stdout.write(sys.stdin.read().upper())"
FAILING = "import sys; sys.stderr.write('bad input'); sys.exit(3)"


def formatter_options(tmp_path, code):
    """Options with one profile piping its output through ``python -c code``."""
    path = tmp_path / "formatted.toml"
    path.write_text(
        "[lang.shout]\n"
        'file_ext = ".txt"\n'
        'template = "$name = $value"\n'
        f"formatter = ['{sys.executable}', '-c', \"{code}\"]\n",
        encoding="utf-8",
    )
    return path


# ═══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════

class TestGenerate:

    def test_writes_every_enabled_profile(self, project, tmp_path, capsys):
        options, constants = project
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out)])
        assert code == EXIT_OK
        assert sorted(p.name for p in out.iterdir()) == [
            "constants.asm", "constants.json", "constants.py", "constants.rs",
        ]
        assert (out / "constants.rs").read_text(encoding="utf-8") == RUST_TEXT
        stdout = capsys.readouterr().out
        assert f"rust: {out / 'constants.rs'} (unformatted)" in stdout

    def test_selected_profile_and_stem(self, project, tmp_path):
        options, constants = project
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants),
                     "-t", str(out), "-s", "memory", "-p", "nasm"])
        assert code == EXIT_OK
        assert [p.name for p in out.iterdir()] == ["memory.asm"]
        assert "%define SMP 1\n" in (out / "memory.asm").read_text(encoding="utf-8")

    def test_failing_profile_does_not_stop_others(self, tmp_path, capsys):
        options = tmp_path / "options.toml"
        options.write_text(OPTIONS_TOML + (
            "\n[lang.broken]\n"
            'file_ext = ".txt"\n'
            'template = "$name $value"\n'
            "[lang.broken.type.PhysAddr]\n"
            'import = ["addr"]\n'
        ), encoding="utf-8")
        constants = tmp_path / "constants.toml"
        constants.write_text(
            '[[constant]]\nname = "A"\ntype = "PhysAddr"\nvalue = 1\n', encoding="utf-8",
        )
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants),
                     "-t", str(out), "-p", "broken", "-p", "python"])
        assert code == EXIT_ERROR
        assert [p.name for p in out.iterdir()] == ["constants.py"]
        stderr = capsys.readouterr().err
        assert "profile 'broken'" in stderr
        assert "ImportsNotSupported" in stderr

    def test_resolution_error_writes_nothing(self, project, tmp_path, capsys):
        options, _ = project
        constants = tmp_path / "cyclic.toml"
        constants.write_text(CYCLIC_CONSTANTS_TOML, encoding="utf-8")
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out)])
        assert code == EXIT_ERROR
        assert not out.exists()
        assert "Cyclic dependency: A -> B -> A" in capsys.readouterr().err


class TestCheckRenderShow:

    def test_check(self, project, capsys):
        options, constants = project
        assert main(["check", "-o", str(options), "-c", str(constants)]) == EXIT_OK
        assert capsys.readouterr().out == "ok: 5 constant(s), 4 profile(s)\n"

    def test_render(self, project, capsys):
        options, constants = project
        assert main(["render", "-o", str(options), "-c", str(constants), "rust"]) == EXIT_OK
        assert capsys.readouterr().out == RUST_TEXT

    def test_render_unknown_profile(self, project, capsys):
        options, constants = project
        code = main(["render", "-o", str(options), "-c", str(constants), "cobol"])
        assert code == EXIT_ERROR
        err = capsys.readouterr().err
        assert "Unknown profile 'cobol'" in err
        assert "hint: registered profiles: json, nasm, python, rust" in err

    def test_show_table(self, project, capsys):
        _, constants = project
        assert main(["show", "-c", str(constants)]) == EXIT_OK
        rows = [line.split() for line in capsys.readouterr().out.splitlines()]
        assert rows[0] == ["KERNEL_LOCATION", "PhysAddr", "16777216"]
        assert rows[-1] == ["SMP", "bool", "true"]

    def test_show_json(self, project, capsys):
        _, constants = project
        assert main(["show", "-c", str(constants), "--json"]) == EXIT_OK
        table = json.loads(capsys.readouterr().out)
        assert table[2] == {"name": "KERNEL_END", "type": "PhysAddr", "value": 0x120_0000}
        assert table[4]["value"] is True


class TestErrorsAndExitCodes:

    def test_json_error_format(self, tmp_path, capsys):
        constants = tmp_path / "cyclic.toml"
        constants.write_text(CYCLIC_CONSTANTS_TOML, encoding="utf-8")
        code = main(["--error-format", "json", "show", "-c", str(constants)])
        assert code == EXIT_ERROR
        err = capsys.readouterr().err
        [error] = json.loads(err[err.index("{"):])["errors"]
        assert error["kind"] == "CyclicDependency"
        assert error["code"] == "CGEN-2002"
        assert error["constant"] == "A"

    def test_syntax_error_caret(self, tmp_path, capsys):
        constants = tmp_path / "bad.toml"
        constants.write_text('[[constant]]\nname = "X"\nvalue = "(add 1 2))"\n',
                             encoding="utf-8")
        assert main(["show", "-c", str(constants)]) == EXIT_ERROR
        err = capsys.readouterr().err.splitlines()
        assert err[0].startswith("constant 'X': error: Unmatched closing parenthesis")
        assert err[1:3] == ["    (add 1 2))", "             ^"]

    def test_deeply_nested_value(self, tmp_path, capsys):
        constants = tmp_path / "deep.toml"
        value = "(add " * 200 + "1" + " 1)" * 200
        constants.write_text(f'[[constant]]\nname = "A"\nvalue = "{value}"\n',
                             encoding="utf-8")
        assert main(["show", "-c", str(constants)]) == EXIT_ERROR
        err = capsys.readouterr().err
        assert err.startswith("constant 'A': error: Expression nests deeper than")
        assert "Internal error" not in err

    def test_missing_input_file(self, tmp_path):
        assert main(["show", "-c", str(tmp_path / "absent.toml")]) == EXIT_INFRA

    def test_invalid_options(self, project, tmp_path, capsys):
        _, constants = project
        options = tmp_path / "bad.toml"
        options.write_text("[codegen]\nenable = []\n", encoding="utf-8")
        assert main(["check", "-o", str(options), "-c", str(constants)]) == EXIT_ERROR
        assert "unknown key(s) 'enable'" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA
        assert "usage:" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert capsys.readouterr().out.startswith("constgen ")


# ═══════════════════════════════════════════════════════════════════════════
# FORMATTERS
# ═══════════════════════════════════════════════════════════════════════════

class TestFormatter:

    def test_run_formatter(self):
        assert run_formatter([sys.executable, "-c", UPPERCASE], "abc\n") == "ABC\n"

    def test_missing_program(self):
        with pytest.raises(FormatterError, match="not found") as info:
            run_formatter(["constgen-no-such-formatter"], "", profile="x")
        assert info.value.profile == "x"

    def test_non_zero_exit(self):
        with pytest.raises(FormatterError, match="status 3: bad input"):
            run_formatter([sys.executable, "-c", FAILING], "")

    def test_timeout(self):
        with pytest.raises(FormatterError, match="timed out"):
            run_formatter([sys.executable, "-c", "import time; time.sleep(10)"], "",
                          timeout=0.5)

    def test_generate_formats_output(self, project, tmp_path, capsys):
        _, constants = project
        options = formatter_options(tmp_path, UPPERCASE)
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out)])
        assert code == EXIT_OK
        text = (out / "constants.txt").read_text(encoding="utf-8")
        assert text.startswith("KERNEL_LOCATION = 16777216\n")
        assert text.endswith("SMP = TRUE\n")
        assert "(unformatted)" not in capsys.readouterr().out

    def test_no_format_flag(self, project, tmp_path):
        _, constants = project
        options = formatter_options(tmp_path, UPPERCASE)
        out = tmp_path / "out"
        main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out),
              "--no-format"])
        assert (out / "constants.txt").read_text(encoding="utf-8").endswith("SMP = true\n")

    def test_failing_formatter_keeps_unformatted_text(self, project, tmp_path, caplog):
        _, constants = project
        options = formatter_options(tmp_path, FAILING)
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out)])
        assert code == EXIT_OK
        assert (out / "constants.txt").read_text(encoding="utf-8").endswith("SMP = true\n")
        assert any("writing unformatted output" in r.getMessage() for r in caplog.records)

    def test_required_formatter_failure(self, project, tmp_path, capsys):
        _, constants = project
        options = formatter_options(tmp_path, FAILING)
        out = tmp_path / "out"
        code = main(["generate", "-o", str(options), "-c", str(constants), "-t", str(out),
                     "--require-formatter"])
        assert code == EXIT_ERROR
        assert not (out / "constants.txt").exists()
        assert "FormatterError" in capsys.readouterr().err


# ═══════════════════════════════════════════════════════════════════════════
# DRIVER
# ═══════════════════════════════════════════════════════════════════════════

class TestDriver:

    def test_write_artifact_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        path = write_artifact(Artifact("p", ".h", "#define A 1\n"), target, "consts")
        assert path == target / "consts.h"
        assert path.read_text(encoding="utf-8") == "#define A 1\n"
        assert [p.name for p in target.iterdir()] == ["consts.h"]

    def test_generator_outcomes(self, options, constants, tmp_path):
        generator = Generator(options, constants, run_formatters=False)
        outcomes = generator.generate(tmp_path, profiles=["python", "cobol"])
        python, cobol = outcomes
        assert python.ok
        assert python.path == tmp_path / "constants.py"
        assert not cobol.ok
        assert cobol.error.profile == "cobol"
        assert cobol.path is None
