from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime

import pytest

from twinop.exceptions import TwinOpConflictError, TwinOpNotFoundError
from twinop.models.device import Device
from twinop.models.thing import Thing

APP = "eclipsecon"

_MUTATING = {"create_thing", "update_thing", "delete_thing", "update_device"}


def conflict() -> TwinOpConflictError:
    return TwinOpConflictError("conflict", status_code=409, endpoint="/test")


def not_found() -> TwinOpNotFoundError:
    return TwinOpNotFoundError("not found", status_code=404, endpoint="/test")


def make_device(
    name: str = "device1",
    *,
    finalizers: list[str] | None = None,
    labels: dict[str, str] | None = None,
    deleted: bool = False,
) -> Device:
    metadata: dict[str, object] = {
        "application": APP,
        "name": name,
        "finalizers": finalizers or [],
        "labels": labels or {},
    }
    if deleted:
        metadata["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    return Device.model_validate({"metadata": metadata, "spec": {"credentials": {}}})


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self._errors: dict[tuple[str, str], list[Exception]] = defaultdict(list)

    def fail(self, op: str, name: str, exc: Exception) -> None:
        """Raise *exc* on the next *op* call for *name*."""
        self._errors[(op, name)].append(exc)

    def _record(self, op: str, name: str) -> None:
        self.calls.append((op, name))
        pending = self._errors.get((op, name))
        if pending:
            raise pending.pop(0)

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in _MUTATING]


class FakeThingStore(_Recorder):
    """In-memory twin service."""

    def __init__(self) -> None:
        super().__init__()
        self.things: dict[str, Thing] = {}

    def add(self, thing: Thing) -> None:
        self.things[thing.name] = thing.model_copy(deep=True)

    async def get_thing(self, application: str, name: str) -> Thing | None:
        self._record("get_thing", name)
        thing = self.things.get(name)
        return thing.model_copy(deep=True) if thing is not None else None

    async def create_thing(self, thing: Thing) -> None:
        self._record("create_thing", thing.name)
        if thing.name in self.things:
            raise conflict()
        self.things[thing.name] = thing.model_copy(deep=True)

    async def update_thing(self, thing: Thing) -> None:
        self._record("update_thing", thing.name)
        if thing.name not in self.things:
            raise not_found()
        self.things[thing.name] = thing.model_copy(deep=True)

    async def delete_thing(self, application: str, name: str) -> bool:
        self._record("delete_thing", name)
        return self.things.pop(name, None) is not None


class FakeRegistry(_Recorder):
    """In-memory device registry."""

    def __init__(self) -> None:
        super().__init__()
        self.devices: dict[str, Device] = {}
        self.list_error: Exception | None = None

    def add(self, device: Device) -> None:
        self.devices[device.name] = device.model_copy(deep=True)

    async def list_devices(self, application: str) -> list[Device] | None:
        self.calls.append(("list_devices", application))
        if self.list_error is not None:
            raise self.list_error
        return [device.model_copy(deep=True) for device in self.devices.values()]

    async def get_device(self, application: str, name: str) -> Device | None:
        self._record("get_device", name)
        device = self.devices.get(name)
        return device.model_copy(deep=True) if device is not None else None

    async def update_device(self, device: Device) -> None:
        self._record("update_device", device.name)
        if device.name not in self.devices:
            raise not_found()
        self.devices[device.name] = device.model_copy(deep=True)


@pytest.fixture
def things() -> FakeThingStore:
    return FakeThingStore()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
