"""
constgen/driver.py
==================

Runs a whole generation: resolve once, render every requested profile,
pipe each artifact through its formatter, write the files.

The driver is the only part of constgen that touches the file system or
spawns processes.  A failing profile is recorded in its
:class:`ProfileOutcome` and does not stop the remaining profiles; nothing
is written for it.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence, Union

from constgen.config import Options
from constgen.emitter import Artifact, Emitter
from constgen.errors import ConstgenError, FormatterError
from constgen.operators import OperatorRegistry
from constgen.resolver import Constant, ResolvedConstants, Resolver

__all__ = [
    "DEFAULT_STEM",
    "DEFAULT_FORMATTER_TIMEOUT",
    "ProfileOutcome",
    "Generator",
    "run_formatter",
    "write_artifact",
]

logger = logging.getLogger(__name__)

DEFAULT_STEM = "constants"
DEFAULT_FORMATTER_TIMEOUT = 30.0


@dataclass
class ProfileOutcome:
    """What happened to one profile during a run."""

    profile: str
    artifact: Optional[Artifact] = None
    error: Optional[ConstgenError] = None
    formatted: bool = False
    path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.artifact is not None


def run_formatter(
    command: Sequence[str],
    text: str,
    *,
    profile: Optional[str] = None,
    timeout: float = DEFAULT_FORMATTER_TIMEOUT,
) -> str:
    """Feed *text* to *command* on stdin and return its stdout."""
    argv = list(command)
    logger.debug("running formatter %s", argv)
    try:
        result = subprocess.run(
            argv,
            input=text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise FormatterError(f"Formatter {argv[0]!r} not found",
                             command=argv, profile=profile) from None
    except subprocess.TimeoutExpired:
        raise FormatterError(f"Formatter {argv[0]!r} timed out after {timeout:g}s",
                             command=argv, profile=profile) from None
    except OSError as exc:
        raise FormatterError(f"Formatter {argv[0]!r} could not be started: {exc}",
                             command=argv, profile=profile) from None

    if result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip()
        message = f"Formatter {argv[0]!r} exited with status {result.returncode}"
        if detail:
            message += f": {detail.splitlines()[-1]}"
        raise FormatterError(message, command=argv, profile=profile)
    return result.stdout


def write_artifact(artifact: Artifact, target_dir: Union[str, Path],
                   stem: str = DEFAULT_STEM) -> Path:
    """Write *artifact* to ``target_dir/stem+ext`` atomically."""
    target = Path(target_dir)
    target.mkdir(parents=True, exist_ok=True)
    path = target / artifact.filename(stem)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(target))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(artifact.text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.info("wrote %s", path)
    return path


class Generator:
    """
    One generation run over an :class:`Options` and a constant set.

    ``run_formatters`` disables external formatters entirely.  When a
    formatter fails the unformatted text is kept and a warning is logged,
    unless ``require_formatter`` turns the failure into a profile error.
    """

    def __init__(
        self,
        options: Options,
        constants: Sequence[Constant],
        *,
        operators: Optional[OperatorRegistry] = None,
        run_formatters: bool = True,
        require_formatter: bool = False,
        formatter_timeout: float = DEFAULT_FORMATTER_TIMEOUT,
    ) -> None:
        self.options = options
        self.constants = list(constants)
        self.resolver = Resolver(options.types, operators)
        self.emitter = Emitter(options.profiles,
                               comment_sections=options.codegen.comment_sections)
        self.run_formatters = run_formatters
        self.require_formatter = require_formatter
        self.formatter_timeout = formatter_timeout

    def resolve(self) -> ResolvedConstants:
        return self.resolver.resolve(self.constants)

    def render(self, resolved: ResolvedConstants,
               profiles: Optional[Sequence[str]] = None) -> List[ProfileOutcome]:
        names = list(profiles) if profiles else self.options.enabled_profiles()
        outcomes: List[ProfileOutcome] = []
        for name in names:
            outcome = ProfileOutcome(name)
            try:
                outcome.artifact = self.emitter.emit(resolved, name)
                self._format(outcome)
            except ConstgenError as exc:
                outcome.error = exc.attach(profile=name)
                outcome.artifact = None
                logger.error("profile %s failed: %s", name, exc.message)
            outcomes.append(outcome)
        return outcomes

    def _format(self, outcome: ProfileOutcome) -> None:
        profile = self.options.profiles.get(outcome.profile)
        if not self.run_formatters or not profile.formatter:
            return
        try:
            text = run_formatter(profile.formatter, outcome.artifact.text,
                                 profile=profile.name, timeout=self.formatter_timeout)
        except FormatterError as exc:
            if self.require_formatter:
                raise
            logger.warning("profile %s: %s; writing unformatted output",
                           profile.name, exc.message)
            return
        outcome.artifact = replace(outcome.artifact, text=text)
        outcome.formatted = True

    def write(self, outcomes: Sequence[ProfileOutcome], target_dir: Union[str, Path],
              stem: str = DEFAULT_STEM) -> None:
        for outcome in outcomes:
            if outcome.ok:
                outcome.path = write_artifact(outcome.artifact, target_dir, stem)

    def generate(self, target_dir: Union[str, Path], stem: str = DEFAULT_STEM,
                 profiles: Optional[Sequence[str]] = None) -> List[ProfileOutcome]:
        """Resolve, render and write; resolution errors propagate."""
        outcomes = self.render(self.resolve(), profiles)
        self.write(outcomes, target_dir, stem)
        return outcomes
