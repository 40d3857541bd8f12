"""
constgen/emitter.py
===================

Renders a :class:`~constgen.resolver.ResolvedConstants` set into the text of
one profile.

Layout of an artifact::

    <comment "Start body block"> (comment sections and intro only)
    <intro>
    <comment "Imports">          (comment sections only)
    <import line> ...
                                 (blank line, only when there are imports)
    <comment "Constants">        (comment sections only)
    <comment lines of constant>  (comment sections only)
    <statement of constant>
    ...
    <comment "End body block">   (comment sections and outro only)
    <outro>

Emission is a pure function of its inputs.  Errors raised here are scoped
to the profile being rendered and carry its name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from constgen.errors import (
    ConstgenError,
    ImportsNotSupportedError,
    TypeRequiredError,
)
from constgen.formatting import format_literal
from constgen.profiles import Profile, ProfileRegistry
from constgen.resolver import ResolvedConstants

__all__ = [
    "Artifact",
    "Emitter",
    "emit",
    "INTRO_SECTION",
    "IMPORTS_SECTION",
    "CONSTANTS_SECTION",
    "OUTRO_SECTION",
]

logger = logging.getLogger(__name__)

INTRO_SECTION = "Start body block"
IMPORTS_SECTION = "Imports"
CONSTANTS_SECTION = "Constants"
OUTRO_SECTION = "End body block"


@dataclass(frozen=True)
class Artifact:
    """Rendered output for one profile."""

    profile_name: str
    file_ext: str
    text: str

    def filename(self, stem: str) -> str:
        return f"{stem}{self.file_ext}"


class Emitter:
    """Renders resolved constants through the profiles of one registry."""

    def __init__(self, registry: ProfileRegistry, *, comment_sections: bool = False) -> None:
        self.registry = registry
        self.comment_sections = comment_sections

    def required_imports(self, resolved: ResolvedConstants, profile: Profile) -> List[str]:
        """Union of effective imports, first-seen order, no duplicates."""
        imports: List[str] = []
        for rc in resolved:
            try:
                rule = self.registry.effective_format(profile.name, rc.type_name)
            except ConstgenError as exc:
                raise exc.attach(constant=rc.name)
            for entry in rule.imports or ():
                if entry not in imports:
                    imports.append(entry)
        return imports

    def emit(self, resolved: ResolvedConstants, profile_name: str) -> Artifact:
        profile = self.registry.get(profile_name)
        try:
            text = self._render(resolved, profile)
        except ConstgenError as exc:
            raise exc.attach(profile=profile.name)
        logger.info("rendered profile %s (%d constant(s))", profile.name, len(resolved))
        return Artifact(profile.name, profile.file_ext, text)

    def emit_all(self, resolved: ResolvedConstants,
                 profile_names: Optional[Iterable[str]] = None) -> List[Artifact]:
        """Render several profiles; the first failure propagates."""
        names = self.registry.names() if profile_names is None else list(profile_names)
        return [self.emit(resolved, name) for name in names]

    def _render(self, resolved: ResolvedConstants, profile: Profile) -> str:
        lines: List[str] = []
        intro = profile.render_intro()
        if intro is not None:
            if self.comment_sections:
                lines.extend(profile.render_comment(INTRO_SECTION))
            lines.append(intro)

        imports = self.required_imports(resolved, profile)
        if imports:
            if profile.import_template is None:
                raise ImportsNotSupportedError(profile=profile.name)
            if self.comment_sections:
                lines.extend(profile.render_comment(IMPORTS_SECTION))
            lines.extend(profile.render_import(entry) for entry in imports)
            lines.append("")

        if self.comment_sections:
            lines.extend(profile.render_comment(CONSTANTS_SECTION))

        requires_type = profile.requires_type
        for rc in resolved:
            if requires_type and rc.type_name is None:
                raise TypeRequiredError(profile=profile.name, constant=rc.name)
            rule = self.registry.effective_format(profile.name, rc.type_name)
            if self.comment_sections and rc.comment:
                lines.extend(profile.render_comment(rc.comment))
            try:
                value_text = format_literal(rc.value, rule)
                lines.append(profile.render_statement(rc.name, rule.type_name or "", value_text))
            except ConstgenError as exc:
                raise exc.attach(constant=rc.name)

        outro = profile.render_outro()
        if outro is not None:
            if self.comment_sections:
                lines.extend(profile.render_comment(OUTRO_SECTION))
            lines.append(outro)
        return "\n".join(lines) + "\n"


def emit(
    resolved: ResolvedConstants,
    profile: str,
    registry: ProfileRegistry,
    comment_sections: bool = False,
) -> Artifact:
    """Render *resolved* through the profile named *profile*."""
    return Emitter(registry, comment_sections=comment_sections).emit(resolved, profile)
