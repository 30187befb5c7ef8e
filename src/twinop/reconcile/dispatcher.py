"""Drive a reconciler to a terminal outcome for one device."""

from __future__ import annotations

import logging

from twinop.client import DeviceRegistry
from twinop.exceptions import TwinOpRetryExhaustedError
from twinop.reconcile.outcome import Outcome, Reconciler

_logger = logging.getLogger(__name__)


class Dispatcher:
    """Re-resolves a device before every attempt and retries until complete.

    Retries happen immediately, without backoff. ``max_attempts=None``
    (the default) places no ceiling on the number of attempts, so a device
    stuck in perpetual conflict keeps the caller busy. Errors raised by the
    registry or the reconciler are never swallowed.
    """

    def __init__(
        self,
        *,
        reconciler: Reconciler,
        registry: DeviceRegistry,
        application: str,
        max_attempts: int | None = None,
    ) -> None:
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._reconciler = reconciler
        self._registry = registry
        self._application = application
        self._max_attempts = max_attempts

    async def dispatch(self, device_id: str) -> int:
        """Reconcile *device_id* until complete, returning the number of attempts."""
        attempts = 0
        while True:
            if self._max_attempts is not None and attempts >= self._max_attempts:
                raise TwinOpRetryExhaustedError(
                    f"Device {device_id} still requests retry after {attempts} attempts",
                    device=device_id,
                    attempts=attempts,
                )
            attempts += 1

            device = await self._registry.get_device(self._application, device_id)
            if device is not None:
                _logger.info("Handle changed device: %s", device_id)
                outcome = await self._reconciler.changed(device)
            else:
                _logger.info("Handle missing device: %s", device_id)
                outcome = await self._reconciler.missing(device_id)

            if outcome is Outcome.COMPLETE:
                _logger.info("Reconciled device %s (attempts=%d)", device_id, attempts)
                return attempts
            _logger.info("Need to retry device %s", device_id)
