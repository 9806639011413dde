"""Parameter substitution applied to files pushed into repositories."""

from __future__ import annotations

import json
import re
from typing import Mapping

_STRING_ACCESSORS = ("require", "get", "getSecret", "requireSecret")
_BOOLEAN_ACCESSORS = ("requireBoolean", "getBoolean")
_NUMBER_ACCESSORS = ("requireNumber", "getNumber")

# Trailing fallback such as ``|| "x"``, ``?? 400`` or ``|| true``.
_FALLBACK = r"""(?:\s*(?:\|\||\?\?)\s*(?:"[^"]*"|'[^']*'|[\w.\-]+))?"""


def _accessor_pattern(accessors: tuple[str, ...], key: str) -> re.Pattern[str]:
    names = "|".join(accessors)
    return re.compile(
        rf"""config\.(?:{names})\(\s*["']{re.escape(key)}["']\s*\){_FALLBACK}"""
    )


def _number_literal(value: str) -> str | None:
    try:
        float(value)
    except ValueError:
        return None
    return value.strip()


def apply_parameters(content: str, parameters: Mapping[str, str]) -> str:
    """Replace placeholders and config accessors in ``content`` with literal values.

    Brace placeholders ``{{ key }}`` and ``${key}`` become the raw value.
    ``config.require("key")`` style accessors become a quoted string literal,
    or a bare literal for boolean and number accessors when the value fits.
    """
    for key, raw in parameters.items():
        value = "" if raw is None else str(raw)
        quoted = json.dumps(value)

        content = re.sub(
            r"\{\{\s*" + re.escape(key) + r"\s*\}\}", lambda _m: value, content
        )
        content = re.sub(r"\$\{" + re.escape(key) + r"\}", lambda _m: value, content)

        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            content = _accessor_pattern(_BOOLEAN_ACCESSORS, key).sub(
                lambda _m: lowered, content
            )
        number = _number_literal(value)
        if number is not None:
            content = _accessor_pattern(_NUMBER_ACCESSORS, key).sub(
                lambda _m: number, content
            )
        content = _accessor_pattern(_STRING_ACCESSORS, key).sub(
            lambda _m: quoted, content
        )
    return content
