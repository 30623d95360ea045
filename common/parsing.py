# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import json
import re
import urllib.parse


def split_comma_separated(value: str | None) -> list[str]:
    """Splits a comma separated list, dropping surrounding whitespace and empty entries."""
    if not value:
        return []
    return [entry.strip() for entry in value.split(",") if entry.strip()]


def path_unescape(value: str | None) -> str:
    """Undo percent encoding once more. Query values arrive already decoded by the framework."""
    if not value:
        return ""
    return urllib.parse.unquote(value)


def load_json_env(raw: str | None, default: dict | list) -> dict | list:
    """Parse a JSON encoded environment variable, falling back to the default if unset."""
    if not raw:
        return default
    return json.loads(raw)


def interpret_as_bool(boolify: str) -> bool:
    """
    Converts an inpput to an boolean according to commonly used patterns.
    """
    if isinstance(boolify, bool):
        return boolify
    if isinstance(boolify, int):
        return boolify > 0
    elif isinstance(boolify, str):
        return re.match(r"^(y|yes|1|true)$", boolify, re.IGNORECASE | re.MULTILINE) is not None
    raise Exception(f"Can't boolify a {boolify}.")
