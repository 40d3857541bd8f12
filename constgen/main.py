#!/usr/bin/env python3
"""constgen/main.py -- CLI entry-point for constgen.

Usage examples
--------------
    # Generate every enabled profile into src/generated/
    constgen generate -o options.toml -c constants.toml -t src/generated

    # Only the rust profile, several constants files, custom file stem
    constgen generate -o options.toml -c base.toml -c board.toml -t out -s memory -p rust

    # Resolve and render everything in memory, write nothing
    constgen check -o options.toml -c constants.toml

    # Print one profile to stdout
    constgen render -o options.toml -c constants.toml nasm

    # Print the resolved constant table
    constgen show -c constants.toml

Exit codes
----------
    0   Success.
    1   Configuration, resolution or emission errors were reported.
    2   Infrastructure failure (unreadable input, unwritable target,
        internal error).

The module doubles as ``python -m constgen`` via the companion
``constgen/__main__.py``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from typing import List, Optional, Sequence, TextIO

from constgen import __version__
from constgen.config import Options, load_constants, load_options
from constgen.driver import (
    DEFAULT_FORMATTER_TIMEOUT,
    DEFAULT_STEM,
    Generator,
    ProfileOutcome,
)
from constgen.errors import ConstgenError

_log = logging.getLogger("constgen")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``constgen`` logger: 0 -> WARNING, 1 -> INFO, 2+ -> DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("constgen")
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(level)
    root.addHandler(handler)


def _report(errors: Sequence[ConstgenError], fmt: str, stream: TextIO) -> None:
    """Write *errors* to *stream* as GCC-style text or one JSON document."""
    if fmt == "json":
        json.dump({"errors": [e.to_json() for e in errors]}, stream, indent=2)
        stream.write("\n")
        return
    for error in errors:
        stream.write(error.format() + "\n")


def _load(args: argparse.Namespace) -> tuple:
    options = load_options(args.options) if args.options else Options()
    constants = load_constants(args.constants)
    return options, constants


def _generator(args: argparse.Namespace, options: Options, constants) -> Generator:
    return Generator(
        options,
        constants,
        run_formatters=not getattr(args, "no_format", True),
        require_formatter=getattr(args, "require_formatter", False),
        formatter_timeout=getattr(args, "formatter_timeout", DEFAULT_FORMATTER_TIMEOUT),
    )


def _failed(outcomes: Sequence[ProfileOutcome]) -> List[ConstgenError]:
    return [o.error for o in outcomes if o.error is not None]


# ===========================================================================
# Subcommand implementations
# ===========================================================================

def cmd_generate(args: argparse.Namespace) -> int:
    options, constants = _load(args)
    generator = _generator(args, options, constants)
    outcomes = generator.render(generator.resolve(), args.profile or None)
    generator.write(outcomes, args.target_dir, args.stem)

    for outcome in outcomes:
        if outcome.ok:
            note = "" if outcome.formatted else " (unformatted)"
            print(f"{outcome.profile}: {outcome.path}{note}")
    errors = _failed(outcomes)
    if errors:
        _report(errors, args.error_format, sys.stderr)
        return EXIT_ERROR
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    options, constants = _load(args)
    generator = _generator(args, options, constants)
    resolved = generator.resolve()
    outcomes = generator.render(resolved, args.profile or None)
    errors = _failed(outcomes)
    if errors:
        _report(errors, args.error_format, sys.stderr)
        return EXIT_ERROR
    print(f"ok: {len(resolved)} constant(s), {len(outcomes)} profile(s)")
    return EXIT_OK


def cmd_render(args: argparse.Namespace) -> int:
    options, constants = _load(args)
    generator = _generator(args, options, constants)
    [outcome] = generator.render(generator.resolve(), [args.profile_name])
    if outcome.error is not None:
        _report([outcome.error], args.error_format, sys.stderr)
        return EXIT_ERROR
    sys.stdout.write(outcome.artifact.text)
    return EXIT_OK


def cmd_show(args: argparse.Namespace) -> int:
    options, constants = _load(args)
    resolved = _generator(args, options, constants).resolve()
    if args.json:
        json.dump(
            [{"name": rc.name, "type": rc.type_name, "value": rc.value.raw}
             for rc in resolved],
            sys.stdout, indent=2,
        )
        sys.stdout.write("\n")
        return EXIT_OK
    rows = [(rc.name, rc.type_name or "-", str(rc.value)) for rc in resolved]
    if rows:
        name_w = max(len(r[0]) for r in rows)
        type_w = max(len(r[1]) for r in rows)
        for name, type_name, value in rows:
            print(f"{name:<{name_w}}  {type_name:<{type_w}}  {value}")
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="constgen",
        description=(
            "constgen -- generate shared constants for several languages\n"
            "from one declarative TOML source."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              constgen generate -o options.toml -c constants.toml -t out/
              constgen check    -o options.toml -c constants.toml
              constgen render   -o options.toml -c constants.toml rust
              constgen show     -c constants.toml
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "--error-format",
        choices=["gcc", "json"],
        default="gcc",
        help="How errors are reported on stderr (default: gcc).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # Shared argument groups ------------------------------------------------

    def _add_input_args(p: argparse.ArgumentParser, options_required: bool = True) -> None:
        p.add_argument(
            "-o", "--options",
            required=options_required,
            metavar="FILE",
            help="Options document (TOML).",
        )
        p.add_argument(
            "-c", "--constants",
            action="append",
            required=True,
            metavar="FILE",
            help="Constants document (TOML); repeat to concatenate several.",
        )

    def _add_format_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--no-format",
            action="store_true",
            help="Do not run the profiles' external formatters.",
        )
        p.add_argument(
            "--require-formatter",
            action="store_true",
            help="Treat a missing or failing formatter as an error.",
        )
        p.add_argument(
            "--formatter-timeout",
            type=float,
            default=DEFAULT_FORMATTER_TIMEOUT,
            metavar="SECONDS",
            help=f"Formatter timeout (default: {DEFAULT_FORMATTER_TIMEOUT:g}).",
        )

    # generate ----------------------------------------------------------------
    p_generate = subparsers.add_parser(
        "generate",
        help="Resolve constants and write one file per enabled profile.",
    )
    _add_input_args(p_generate)
    _add_format_args(p_generate)
    p_generate.add_argument(
        "-t", "--target-dir",
        required=True,
        metavar="DIR",
        help="Directory receiving the generated files.",
    )
    p_generate.add_argument(
        "-s", "--stem",
        default=DEFAULT_STEM,
        help=f"File name stem of generated files (default: {DEFAULT_STEM}).",
    )
    p_generate.add_argument(
        "-p", "--profile",
        action="append",
        metavar="NAME",
        help="Only generate this profile (repeatable; default: codegen.enabled).",
    )
    p_generate.set_defaults(func=cmd_generate)

    # check -------------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Resolve and render in memory, report errors, write nothing.",
    )
    _add_input_args(p_check)
    p_check.add_argument(
        "-p", "--profile",
        action="append",
        metavar="NAME",
        help="Only check this profile (repeatable).",
    )
    p_check.set_defaults(func=cmd_check)

    # render ------------------------------------------------------------------
    p_render = subparsers.add_parser(
        "render",
        help="Print the output of one profile to stdout.",
    )
    _add_input_args(p_render)
    _add_format_args(p_render)
    p_render.add_argument("profile_name", metavar="PROFILE", help="Profile to render.")
    p_render.set_defaults(func=cmd_render)

    # show --------------------------------------------------------------------
    p_show = subparsers.add_parser(
        "show",
        help="Print the resolved constant table.",
    )
    _add_input_args(p_show, options_required=False)
    p_show.add_argument(
        "--json",
        action="store_true",
        help="Print the table as JSON.",
    )
    p_show.set_defaults(func=cmd_show)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the constgen CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` -> ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    # No subcommand given -> print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except ConstgenError as exc:
        _report([exc], args.error_format, sys.stderr)
        return EXIT_ERROR
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT
    except Exception as exc:
        _log.error("Internal error: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    sys.exit(main())
