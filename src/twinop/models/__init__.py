"""Data models for twinop.

Registry and twin payloads use :class:`~twinop.models._base.TwinOpBaseModel`
(camelCase aliases, unknown fields preserved); the thing template uses
frozen models that reject unknown keys.
"""

from twinop.models._base import HumanDuration, ObjectMetadata, TwinOpBaseModel
from twinop.models.device import Device
from twinop.models.template import (
    CodeDefinition,
    ReconciliationTemplate,
    SyntheticDefinition,
    ThingTemplate,
    TimerDefinition,
)
from twinop.models.thing import (
    Changed,
    Code,
    Deleting,
    Reconciliation,
    SyntheticFeature,
    SyntheticType,
    Thing,
    Timer,
)

__all__ = [
    "Changed",
    "Code",
    "CodeDefinition",
    "Deleting",
    "Device",
    "HumanDuration",
    "ObjectMetadata",
    "Reconciliation",
    "ReconciliationTemplate",
    "SyntheticDefinition",
    "SyntheticFeature",
    "SyntheticType",
    "Thing",
    "ThingTemplate",
    "Timer",
    "TimerDefinition",
    "TwinOpBaseModel",
]
