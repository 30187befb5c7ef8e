"""Twin service Thing model.

Only the parts of a Thing the operator manages are modelled explicitly:
the metadata annotations, the synthetic feature state and the
reconciliation handlers. Reported/desired state, schema and any other
server-side sections are preserved as extra fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, SerializationInfo, SerializerFunctionWrapHandler, model_serializer, model_validator

from twinop.models._base import HumanDuration, ObjectMetadata, TwinOpBaseModel, utcnow


class Code(TwinOpBaseModel):
    """Handler code attached to a Thing."""

    java_script: str


class SyntheticType(TwinOpBaseModel):
    """How a synthetic feature is computed: a script, or an alias of another feature."""

    java_script: str | None = None
    alias: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> SyntheticType:
        if (self.java_script is None) == (self.alias is None):
            raise ValueError("synthetic type needs exactly one of 'javaScript' or 'alias'")
        return self


class SyntheticFeature(TwinOpBaseModel):
    type: SyntheticType
    value: Any = None
    last_update: datetime = Field(default_factory=utcnow)

    @model_serializer(mode="wrap")
    def _keep_null_value(self, handler: SerializerFunctionWrapHandler, info: SerializationInfo) -> dict[str, Any]:
        # The cached value is part of the contract even before the first evaluation.
        data: dict[str, Any] = handler(self)
        data.setdefault("value", None)
        return data


class Changed(TwinOpBaseModel):
    code: Code
    last_log: list[str] = Field(default_factory=list)


class Deleting(TwinOpBaseModel):
    code: Code


class Timer(TwinOpBaseModel):
    code: Code
    period: HumanDuration
    stopped: bool = False
    last_started: datetime | None = None
    last_run: datetime | None = None
    last_log: list[str] = Field(default_factory=list)
    initial_delay: HumanDuration | None = None


class Reconciliation(TwinOpBaseModel):
    changed: dict[str, Changed] = Field(default_factory=dict)
    deleting: dict[str, Deleting] = Field(default_factory=dict)
    timers: dict[str, Timer] = Field(default_factory=dict)


class Thing(TwinOpBaseModel):
    """A Thing stored in the twin service."""

    metadata: ObjectMetadata
    synthetic_state: dict[str, SyntheticFeature] = Field(default_factory=dict)
    reconciliation: Reconciliation = Field(default_factory=Reconciliation)

    @classmethod
    def new(cls, application: str, name: str) -> Thing:
        """An empty Thing, ready to be configured and created."""
        return cls(metadata=ObjectMetadata(application=application, name=name))

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def application(self) -> str:
        return self.metadata.application
