"""Redaction for debug logs.

Configuration dumps carry the API token and Thing payloads carry whole
handler scripts. :func:`redact_for_log` masks the former and shortens the
latter so DEBUG output stays safe and readable.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

_SECRET_KEYS = frozenset(
    {"password", "token", "accesstoken", "refreshtoken", "authorization", "cookie", "secret", "clientsecret"}
)
_SCRIPT_KEYS = frozenset({"javascript"})

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s]+@", re.IGNORECASE)

_MAX_DEPTH = 20


def _normalize(key: Any) -> str:
    return str(key).lower().replace("_", "").replace("-", "")


def _shorten(text: str, limit: int) -> str:
    text = _URL_CREDENTIALS.sub(rf"\g<scheme>{REDACTED}@", text)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}…<truncated>"


def redact_for_log(value: Any, *, max_string: int = 512, script_preview: int = 40, _depth: int = 0) -> Any:
    """Return a copy of *value* with secrets masked and long strings cut.

    Values under secret-looking keys become ``<redacted>``; script sources
    are cut to *script_preview* characters; credentials embedded in URLs
    are masked.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    match value:
        case None | bool() | int() | float():
            return value
        case str():
            return _shorten(value, max_string)
        case bytes() | bytearray():
            return f"<bytes:{len(value)}b>"
        case Mapping():
            result: dict[str, Any] = {}
            for key, item in value.items():
                name = _normalize(key)
                if name in _SECRET_KEYS:
                    result[str(key)] = REDACTED
                elif name in _SCRIPT_KEYS and isinstance(item, str):
                    result[str(key)] = _shorten(item, script_preview)
                else:
                    result[str(key)] = redact_for_log(
                        item, max_string=max_string, script_preview=script_preview, _depth=_depth + 1
                    )
            return result
        case Sequence():
            return [
                redact_for_log(item, max_string=max_string, script_preview=script_preview, _depth=_depth + 1)
                for item in value
            ]
    return repr(value)
