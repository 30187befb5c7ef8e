"""Periodic full scan of the registry.

Events can be lost (bus outages, operator restarts); the scan dispatches
every known device on a fixed schedule so the twin service converges
anyway.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

from twinop._constants import DEFAULT_INTERVAL_SECONDS
from twinop.client import DeviceRegistry
from twinop.exceptions import TwinOpError
from twinop.reconcile.dispatcher import Dispatcher

_logger = logging.getLogger(__name__)


class PeriodicScanner:
    """Dispatches every registry device once per interval.

    The first pass runs immediately. Passes never overlap: when a pass
    overruns one or more ticks those ticks are skipped and the next pass
    starts on the following tick of the fixed schedule.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        registry: DeviceRegistry,
        application: str,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._dispatcher = dispatcher
        self._registry = registry
        self._application = application
        self._interval = interval
        self._clock = clock
        self._sleep = sleep

    async def scan_once(self) -> int:
        """Run one pass and return the number of devices reconciled.

        A registry failure counts as an empty registry. The first dispatch
        error aborts the pass.
        """
        try:
            devices = await self._registry.list_devices(self._application)
        except TwinOpError:
            _logger.exception("Failed to list devices of %s", self._application)
            devices = None

        if not devices:
            _logger.info("Scan found no devices in %s", self._application)
            return 0

        _logger.info("Scanning %d devices", len(devices))
        reconciled = 0
        for device in devices:
            try:
                await self._dispatcher.dispatch(device.name)
            except TwinOpError:
                _logger.exception("Scan aborted at device %s", device.name)
                break
            reconciled += 1
        return reconciled

    def _next_tick(self, scheduled: float) -> float:
        next_tick = scheduled + self._interval
        now = self._clock()
        if next_tick < now:
            missed = math.ceil((now - next_tick) / self._interval)
            _logger.warning("Scan overran its interval, skipping %d tick(s)", missed)
            next_tick += missed * self._interval
        return next_tick

    async def run(self) -> None:
        """Scan forever; stops only when cancelled."""
        scheduled = self._clock()
        while True:
            delay = scheduled - self._clock()
            if delay > 0:
                await self._sleep(delay)
            await self.scan_once()
            scheduled = self._next_tick(scheduled)
