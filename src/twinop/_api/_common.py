"""Shared helpers for the twin and registry endpoint modules.

- building URL paths from (percent-encoded) segments
- mapping non-success statuses onto the exception taxonomy
- validating response bodies into models

It is internal to twinop and may change at any time.
"""

from __future__ import annotations

from typing import Any, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from twinop._transport import ApiResponse
from twinop.exceptions import (
    TwinOpApiError,
    TwinOpConflictError,
    TwinOpNotFoundError,
    TwinOpTransportError,
)

M = TypeVar("M", bound=BaseModel)

NOT_FOUND = 404
CONFLICT = 409


def build_path(*segments: str) -> str:
    """Join path segments, encoding each one (``a/sensor`` becomes ``a%2Fsensor``)."""
    return "/" + "/".join(quote(segment, safe="") for segment in segments)


def _error_reason(body: Any) -> tuple[str, str]:
    if isinstance(body, dict):
        return str(body.get("error") or ""), str(body.get("message") or "")
    if isinstance(body, str):
        return "", body
    return "", ""


def raise_for_status(response: ApiResponse) -> None:
    """Raise the matching :class:`TwinOpApiError` for a non-2xx response."""
    if response.ok:
        return

    reason, message = _error_reason(response.body)
    text = f"{response.endpoint} failed: status={response.status}"
    if reason or message:
        text = f"{text} error={reason} message={message}"

    error_cls: type[TwinOpApiError] = TwinOpApiError
    if response.status == NOT_FOUND:
        error_cls = TwinOpNotFoundError
    elif response.status == CONFLICT:
        error_cls = TwinOpConflictError
    raise error_cls(text, status_code=response.status, endpoint=response.endpoint, reason=reason)


def parse_body(model: type[M], response: ApiResponse) -> M:
    """Validate the response body into *model*."""
    try:
        return model.model_validate(response.body)
    except ValidationError as exc:
        raise TwinOpTransportError(
            f"Unexpected {model.__name__} payload from {response.endpoint}: {exc}",
            status_code=response.status,
            endpoint=response.endpoint,
        ) from exc
