"""
constgen/template.py
====================

``$parameter`` templates used by profiles.

Templates are :class:`string.Template` strings: ``$name`` (or ``${name}``)
is replaced, ``$$`` is a literal dollar sign.  Each template slot of a
profile accepts a fixed parameter set; :func:`validate_template` checks a
template against its slot when the profile is built, so rendering never
meets an unknown parameter.
"""

from __future__ import annotations

from string import Template
from typing import AbstractSet, List, Mapping, Optional

from constgen.errors import TemplateError

__all__ = [
    "STATEMENT_PARAMETERS",
    "IMPORT_PARAMETERS",
    "COMMENT_PARAMETERS",
    "NO_PARAMETERS",
    "template_parameters",
    "validate_template",
    "uses_parameter",
    "render_template",
]

STATEMENT_PARAMETERS: AbstractSet[str] = frozenset({"name", "type", "value"})
IMPORT_PARAMETERS: AbstractSet[str] = frozenset({"import"})
COMMENT_PARAMETERS: AbstractSet[str] = frozenset({"comment"})
NO_PARAMETERS: AbstractSet[str] = frozenset()


def template_parameters(text: str) -> List[str]:
    """Parameter names used in *text*, in order of first use.

    Raises :class:`TemplateError` for a ``$`` that is neither ``$$`` nor
    followed by a parameter name.
    """
    found: List[str] = []
    for match in Template.pattern.finditer(text):
        if match.group("invalid") is not None:
            column = match.start("invalid")
            raise TemplateError(
                f"Invalid placeholder at column {column + 1}: use $$ for a literal '$'",
                template=text,
            )
        name = match.group("named") or match.group("braced")
        if name is not None and name not in found:
            found.append(name)
    return found


def validate_template(
    text: str,
    allowed: AbstractSet[str],
    *,
    slot: str,
    profile: Optional[str] = None,
) -> None:
    try:
        used = template_parameters(text)
    except TemplateError as exc:
        exc.message = f"{slot} template: {exc.message}"
        raise exc.attach(profile=profile)
    unknown = [name for name in used if name not in allowed]
    if unknown:
        accepted = ", ".join("$" + p for p in sorted(allowed)) or "none"
        raise TemplateError(
            f"{slot} template uses unknown parameter(s) "
            + ", ".join("$" + p for p in unknown)
            + f" (accepted: {accepted})",
            template=text,
            profile=profile,
        )


def uses_parameter(text: str, name: str) -> bool:
    return name in template_parameters(text)


def render_template(text: str, params: Mapping[str, str]) -> str:
    try:
        return Template(text).substitute(params)
    except KeyError as exc:
        raise TemplateError(f"Missing template parameter ${exc.args[0]}",
                            template=text) from None
