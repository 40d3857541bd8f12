"""
constgen/profiles.py
====================

Emission profiles and the registry that resolves effective format rules.

A :class:`Profile` describes one target notation: the statement template,
optional import/comment templates, intro/outro text, an optional external
formatter, a profile-wide default :class:`TypeFormatRule` and per-type
overrides.  The :class:`ProfileRegistry` is built once per run and is
read-only afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from constgen.errors import (
    ImportsNotSupportedError,
    UnknownProfileError,
    UnknownTypeInProfileError,
)
from constgen.formatting import SYSTEM_DEFAULT_RULE, TypeFormatRule
from constgen.template import (
    COMMENT_PARAMETERS,
    IMPORT_PARAMETERS,
    NO_PARAMETERS,
    STATEMENT_PARAMETERS,
    render_template,
    uses_parameter,
    validate_template,
)

__all__ = ["Profile", "ProfileRegistry"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    name: str
    file_ext: str
    template: str
    import_template: Optional[str] = None
    comment_template: Optional[str] = None
    intro: Optional[str] = None
    outro: Optional[str] = None
    formatter: Optional[Tuple[str, ...]] = None
    defaults: TypeFormatRule = field(default_factory=TypeFormatRule)
    types: Mapping[str, TypeFormatRule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", MappingProxyType(dict(self.types)))
        if self.formatter is not None:
            object.__setattr__(self, "formatter", tuple(self.formatter))

        validate_template(self.template, STATEMENT_PARAMETERS,
                          slot="statement", profile=self.name)
        if self.import_template is not None:
            validate_template(self.import_template, IMPORT_PARAMETERS,
                              slot="import", profile=self.name)
        if self.comment_template is not None:
            validate_template(self.comment_template, COMMENT_PARAMETERS,
                              slot="comment", profile=self.name)
        if self.intro is not None:
            validate_template(self.intro, NO_PARAMETERS, slot="intro", profile=self.name)
        if self.outro is not None:
            validate_template(self.outro, NO_PARAMETERS, slot="outro", profile=self.name)

    @property
    def requires_type(self) -> bool:
        """True when the statement template spells ``$type``."""
        return uses_parameter(self.template, "type")

    @property
    def supports_comments(self) -> bool:
        return self.comment_template is not None

    def render_statement(self, name: str, type_token: str, value: str) -> str:
        return render_template(self.template, {"name": name, "type": type_token, "value": value})

    def render_import(self, import_: str) -> str:
        if self.import_template is None:
            raise ImportsNotSupportedError(profile=self.name)
        return render_template(self.import_template, {"import": import_})

    def render_comment(self, text: str) -> List[str]:
        """One rendered comment line per line of *text*; empty without a template."""
        if self.comment_template is None:
            return []
        return [render_template(self.comment_template, {"comment": line})
                for line in text.splitlines() or [""]]

    def render_intro(self) -> Optional[str]:
        return render_template(self.intro, {}) if self.intro is not None else None

    def render_outro(self) -> Optional[str]:
        return render_template(self.outro, {}) if self.outro is not None else None


class ProfileRegistry:
    """
    Read-only set of profiles plus format rule resolution.

    With ``require_type_coverage`` every semantic type that reaches
    :meth:`effective_format` must have an entry in the profile's type table;
    otherwise missing entries silently fall back to the profile and system
    defaults.
    """

    def __init__(self, profiles: Iterable[Profile] = (), *,
                 require_type_coverage: bool = False) -> None:
        table: Dict[str, Profile] = {}
        for profile in profiles:
            if profile.name in table:
                raise ValueError(f"profile {profile.name!r} registered twice")
            table[profile.name] = profile
        self._profiles: Mapping[str, Profile] = MappingProxyType(table)
        self.require_type_coverage = require_type_coverage

    def get(self, name: str) -> Profile:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownProfileError(name, list(self._profiles)) from None

    def names(self) -> List[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __iter__(self) -> Iterator[Profile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def effective_format(self, profile_name: str, type_name: Optional[str]) -> TypeFormatRule:
        """
        Merge system default <- profile default <- type override.

        The resulting rule has every field set.  Its ``type_name`` is the
        profile's spelling of the type, or the semantic type name itself
        (empty for untyped constants).
        """
        profile = self.get(profile_name)
        rule = SYSTEM_DEFAULT_RULE.merged(profile.defaults)
        if type_name is not None:
            override = profile.types.get(type_name)
            if override is None:
                if self.require_type_coverage:
                    raise UnknownTypeInProfileError(type_name, profile=profile_name)
                logger.debug("profile %s: no rule for type %s, using defaults",
                             profile_name, type_name)
            else:
                rule = rule.merged(override)
        if rule.type_name is None:
            rule = rule.merged(TypeFormatRule(type_name=type_name or ""))
        return rule
