"""Thing template: the desired state of every sensor Thing.

The template is loaded once at startup (see :mod:`twinop.template`) and is
immutable afterwards. Script sources may be given inline or as a reference
to an external file::

    synthetics:
      temperature:
        javaScript: "return context.state.reported.temp;"
      battery:
        alias: batteryLevel
    reconciliation:
      changed:
        notify:
          javaScript:
            path: scripts/notify.js
      timers:
        heartbeat:
          code:
            javaScript: "..."
          period: 1m

File references are read while validating. Relative paths resolve
against ``base_dir`` from the validation context (the template file's
directory), or the working directory when no context is given.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from twinop.models._base import HumanDuration
from twinop.models.thing import Code, SyntheticType


def _resolve_source(value: Any, info: ValidationInfo) -> Any:
    if not isinstance(value, dict):
        return value
    if set(value) != {"path"}:
        raise ValueError("expected either string content, or an object with a single 'path' field")
    path = Path(str(value["path"]))
    if not path.is_absolute():
        base_dir = (info.context or {}).get("base_dir")
        if base_dir is not None:
            path = Path(base_dir) / path
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"failed to load content from external source ({path}): {exc}") from exc


ScriptSource = Annotated[str, BeforeValidator(_resolve_source)]
"""Script text given inline, or as {"path": ...} read at load time."""


class _TemplateModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class CodeDefinition(_TemplateModel):
    """Handler code definition (currently only JavaScript)."""

    java_script: ScriptSource

    def to_code(self) -> Code:
        return Code(java_script=self.java_script)


class SyntheticDefinition(_TemplateModel):
    """Synthetic feature definition: a script, or an alias of another feature."""

    java_script: ScriptSource | None = None
    alias: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> SyntheticDefinition:
        if (self.java_script is None) == (self.alias is None):
            raise ValueError("synthetic definition needs exactly one of 'javaScript' or 'alias'")
        return self

    def to_type(self) -> SyntheticType:
        return SyntheticType(java_script=self.java_script, alias=self.alias)


class TimerDefinition(_TemplateModel):
    code: CodeDefinition
    period: HumanDuration

    @field_validator("period")
    @classmethod
    def _positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("timer period must be positive")
        return value


class ReconciliationTemplate(_TemplateModel):
    changed: dict[str, CodeDefinition] = Field(default_factory=dict)
    deleting: dict[str, CodeDefinition] = Field(default_factory=dict)
    timers: dict[str, TimerDefinition] = Field(default_factory=dict)

    @field_validator("changed", "deleting", "timers", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class ThingTemplate(_TemplateModel):
    """Desired synthetic features and reconciliation handlers of a sensor Thing."""

    synthetics: dict[str, SyntheticDefinition] = Field(default_factory=dict)
    reconciliation: ReconciliationTemplate = Field(default_factory=ReconciliationTemplate)

    @field_validator("synthetics", "reconciliation", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any) -> Any:
        # An empty YAML section (``synthetics:``) parses as None.
        return {} if value is None else value
