"""Compile branch and pull request naming patterns.

Patterns in the lifecycle config are either raw regular expressions (they
start with ``^``) or readable templates such as ``type/ID-slug`` and
``[ID] Title``. Template placeholders become named groups:

    type   -> (?P<type>...)   one of the allowed branch prefixes
    ID     -> (?P<id>...)     e.g. ARCH-123
    slug   -> (?P<slug>...)   lowercase words joined by dashes
    Title  -> (?P<title>...)  free text

Whitespace in a template matches one or more whitespace characters; every
other character is matched literally.
"""

from __future__ import annotations

import re

ID_PATTERN = r"[A-Z]+-\d+"
SLUG_PATTERN = r"[a-z0-9]+(?:-[a-z0-9]+)*"
DEFAULT_TYPE_PATTERN = r"[a-z][a-z0-9-]*"

_TOKEN_RE = re.compile(r"\b(?:type|ID|slug|Title)\b|\s+")


def compile_pattern(pattern: str, allowed_prefixes: tuple[str, ...] = ()) -> re.Pattern[str]:
    """Compile a raw regex or a placeholder template.

    Raises ``re.error`` when the result is not a valid expression.
    """
    if pattern.startswith("^"):
        return re.compile(pattern)
    return re.compile(template_to_regex(pattern, allowed_prefixes))


def template_to_regex(template: str, allowed_prefixes: tuple[str, ...] = ()) -> str:
    type_pattern = (
        "|".join(re.escape(p) for p in sorted(allowed_prefixes, key=len, reverse=True))
        if allowed_prefixes
        else DEFAULT_TYPE_PATTERN
    )
    replacements = {
        "type": f"(?P<type>{type_pattern})",
        "ID": f"(?P<id>{ID_PATTERN})",
        "slug": f"(?P<slug>{SLUG_PATTERN})",
        "Title": r"(?P<title>\S.*)",
    }

    parts: list[str] = ["^"]
    position = 0
    for match in _TOKEN_RE.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        token = match.group(0)
        parts.append(replacements.get(token, r"\s+"))
        position = match.end()
    parts.append(re.escape(template[position:]))
    parts.append("$")
    return "".join(parts)
