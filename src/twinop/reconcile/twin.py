"""Device reconciler keeping the twin service in line with the registry.

For every device two Things exist in the twin service:

- the *device* Thing (named like the device), provisioned by someone
  else and only annotated here;
- the *sensor* Thing (``<device>/sensor``), created, configured from the
  thing template and deleted by this reconciler.

The reconciler is level-triggered: it keeps no state between calls and
decides what to do from the device it is handed. The device finalizer is
the only persisted marker; it is added (and committed with a retry)
before any Thing is touched and removed only after the sensor Thing is
gone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from twinop._constants import FINALIZER, GROUP_ANNOTATION_KEY, GROUP_ANNOTATION_VALUE, sensor_thing_name
from twinop.client import DeviceRegistry, ThingStore
from twinop.exceptions import TwinOpConflictError, TwinOpNotFoundError
from twinop.models._base import utcnow
from twinop.models.device import Device
from twinop.models.template import ThingTemplate
from twinop.models.thing import Thing
from twinop.reconcile.differ import configure_sensor
from twinop.reconcile.outcome import Outcome

_logger = logging.getLogger(__name__)


class TwinReconciler:
    """Reconciles a single device against the twin service."""

    def __init__(
        self,
        *,
        things: ThingStore,
        registry: DeviceRegistry,
        template: ThingTemplate,
        application: str,
        label_selector: dict[str, str] | None = None,
        group_annotation: tuple[str, str] = (GROUP_ANNOTATION_KEY, GROUP_ANNOTATION_VALUE),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._things = things
        self._registry = registry
        self._template = template
        self._application = application
        self._label_selector = dict(label_selector or {})
        self._group_annotation = group_annotation
        self._clock = clock

    async def changed(self, device: Device) -> Outcome:
        if not device.matches(self._label_selector):
            _logger.debug("Device %s doesn't match selector", device.name)
            return await self._removing(device)
        if device.is_deleted:
            _logger.debug("Device %s is soft-deleted", device.name)
            return await self._removing(device)
        return await self._ensure(device)

    async def missing(self, device: str) -> Outcome:
        _logger.info("Deleting twin device: %s", device)
        try:
            await self._delete_sensor(device)
        except TwinOpConflictError:
            _logger.info("Conflict deleting sensor thing of %s, retrying", device)
            return Outcome.RETRY
        return Outcome.COMPLETE

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def _delete_sensor(self, device: str) -> None:
        name = sensor_thing_name(device)
        try:
            existed = await self._things.delete_thing(self._application, name)
        except TwinOpNotFoundError:
            existed = False
        _logger.debug("Sensor thing %s deleted (existed=%s)", name, existed)

    async def _removing(self, device: Device) -> Outcome:
        """Delete the sensor thing, then release the device finalizer."""
        try:
            await self._delete_sensor(device.name)
        except TwinOpConflictError:
            _logger.info("Conflict deleting sensor thing of %s, retrying", device.name)
            return Outcome.RETRY

        device = device.model_copy(deep=True)
        if not device.remove_finalizer(FINALIZER):
            return Outcome.COMPLETE

        _logger.info("Removing finalizer from device %s", device.name)
        try:
            await self._registry.update_device(device)
        except TwinOpNotFoundError:
            _logger.debug("Device %s vanished while removing finalizer", device.name)
        except TwinOpConflictError:
            _logger.info("Conflict removing finalizer from %s, retrying", device.name)
            return Outcome.RETRY
        return Outcome.COMPLETE

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def _ensure(self, device: Device) -> Outcome:
        """Ensure that the device is provisioned in the twin service."""
        _logger.info("Ensuring twin device: %s", device.name)

        device = device.model_copy(deep=True)
        if device.ensure_finalizer(FINALIZER):
            # Commit the finalizer first; the next attempt sees it on the re-fetched device.
            try:
                await self._registry.update_device(device)
            except (TwinOpConflictError, TwinOpNotFoundError) as exc:
                _logger.info("Adding finalizer to %s raced (%s), retrying", device.name, exc.status_code)
            else:
                _logger.info("Added finalizer to device %s", device.name)
            return Outcome.RETRY

        if await self._ensure_sensor(device) is Outcome.RETRY:
            return Outcome.RETRY

        return await self._ensure_device(device)

    async def _ensure_sensor(self, device: Device) -> Outcome:
        name = sensor_thing_name(device.name)
        thing = await self._things.get_thing(self._application, name)

        if thing is None:
            thing = Thing.new(self._application, name)
            configure_sensor(self._template, thing, now=self._clock())
            _logger.info("Creating sensor thing %s", name)
            write = self._things.create_thing
        elif configure_sensor(self._template, thing, now=self._clock()):
            _logger.info("Updating sensor thing %s", name)
            write = self._things.update_thing
        else:
            _logger.debug("Sensor thing %s is up to date", name)
            return Outcome.COMPLETE

        try:
            await write(thing)
        except (TwinOpConflictError, TwinOpNotFoundError) as exc:
            _logger.info("Writing sensor thing %s raced (%s), retrying", name, exc.status_code)
            return Outcome.RETRY
        return Outcome.COMPLETE

    async def _ensure_device(self, device: Device) -> Outcome:
        thing = await self._things.get_thing(self._application, device.name)
        if thing is None:
            # Provisioned elsewhere; nothing to annotate yet.
            _logger.info("Device thing %s not provisioned yet, retrying", device.name)
            return Outcome.RETRY

        key, value = self._group_annotation
        if thing.metadata.annotations.get(key) == value:
            _logger.debug("Device thing %s is up to date", device.name)
            return Outcome.COMPLETE

        thing.metadata.annotations[key] = value
        try:
            await self._things.update_thing(thing)
        except (TwinOpConflictError, TwinOpNotFoundError) as exc:
            _logger.info("Updating device thing %s raced (%s), retrying", device.name, exc.status_code)
            return Outcome.RETRY
        return Outcome.COMPLETE
