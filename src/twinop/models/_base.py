"""Base model and shared field types for twin and registry payloads.

Every wire model inherits from :class:`TwinOpBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* ``extra="allow"`` so fields the operator does not model survive a
  fetch/modify/write round trip unchanged.
* :meth:`TwinOpBaseModel.to_api` producing the JSON body sent back to
  the service.

Durations travel as humantime strings (``"1m"``) and are exposed as
:class:`datetime.timedelta` through the :data:`HumanDuration` type.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from twinop._constants import format_duration, parse_duration


def _coerce_duration(value: Any) -> Any:
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError("duration must be a string or number of seconds")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if isinstance(value, str):
        return parse_duration(value)
    return value


HumanDuration = Annotated[
    timedelta,
    BeforeValidator(_coerce_duration),
    PlainSerializer(format_duration, return_type=str, when_used="json"),
]
"""Annotated type accepting humantime strings or seconds, serialized as humantime."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class TwinOpBaseModel(BaseModel):
    """Base for twin API and registry API payload models."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        validate_assignment=False,
    )

    def to_api(self) -> dict[str, Any]:
        """JSON-compatible dict using the service's camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObjectMetadata(TwinOpBaseModel):
    """Metadata block shared by registry devices and twin things."""

    application: str
    name: str
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)

    @field_validator("labels", "annotations", "finalizers", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "finalizers" else {}
        return value
