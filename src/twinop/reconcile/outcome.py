"""Reconciliation outcome and the reconciler capability."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol

from twinop.models.device import Device


class Outcome(StrEnum):
    """Terminal signal of one reconciliation attempt."""

    COMPLETE = "complete"
    RETRY = "retry"


class Reconciler(Protocol):
    """Structural reconciler interface used by the dispatcher.

    Implementations raise for errors that are fatal to the attempt and
    return :attr:`Outcome.RETRY` when the device should be re-fetched and
    attempted again straight away.
    """

    async def changed(self, device: Device) -> Outcome:
        ...

    async def missing(self, device: str) -> Outcome:
        ...
