"""Registry device model."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from twinop.models._base import ObjectMetadata, TwinOpBaseModel


class Device(TwinOpBaseModel):
    """A device as stored in the registry.

    Only ``metadata`` is interpreted by the operator; ``spec`` and
    ``status`` are carried through untouched so a write-back does not
    drop registry-side configuration.
    """

    metadata: ObjectMetadata
    spec: dict[str, Any] = Field(default_factory=dict)
    status: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def application(self) -> str:
        return self.metadata.application

    @property
    def is_deleted(self) -> bool:
        """Whether the registry has soft-deleted this device."""
        return self.metadata.deletion_timestamp is not None

    def has_finalizer(self, token: str) -> bool:
        return token in self.metadata.finalizers

    def ensure_finalizer(self, token: str) -> bool:
        """Add *token* to the finalizers, returning ``True`` if it was added."""
        if token in self.metadata.finalizers:
            return False
        self.metadata.finalizers.append(token)
        return True

    def remove_finalizer(self, token: str) -> bool:
        """Remove *token* from the finalizers, returning ``True`` if it was present."""
        if token not in self.metadata.finalizers:
            return False
        self.metadata.finalizers = [f for f in self.metadata.finalizers if f != token]
        return True

    def matches(self, selector: dict[str, str]) -> bool:
        """Whether every ``key=value`` pair of *selector* is present in the labels."""
        labels = self.metadata.labels
        return all(labels.get(key) == value for key, value in selector.items())
