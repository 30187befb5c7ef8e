"""Top-level wiring: clients, reconciler, dispatcher and both ingestion loops."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from twinop._mqtt import MqttRuntime
from twinop.client import ApiClients
from twinop.config import OperatorConfig
from twinop.ingestion.events import EventSourceAdapter
from twinop.ingestion.scanner import PeriodicScanner
from twinop.models.template import ThingTemplate
from twinop.reconcile.dispatcher import Dispatcher
from twinop.reconcile.twin import TwinReconciler

_logger = logging.getLogger(__name__)


class Operator:
    """Runs the periodic scanner and the event adapter against one application.

    Usage::

        operator = Operator(config, load_template(config.template_path))
        await operator.run()
    """

    def __init__(
        self,
        config: OperatorConfig,
        template: ThingTemplate,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._template = template
        self._session = session

    @property
    def config(self) -> OperatorConfig:
        return self._config

    def build_dispatcher(self, clients: ApiClients) -> Dispatcher:
        config = self._config
        reconciler = TwinReconciler(
            things=clients.things,
            registry=clients.registry,
            template=self._template,
            application=config.application,
            label_selector=config.label_selector,
            group_annotation=config.group_annotation,
        )
        return Dispatcher(
            reconciler=reconciler,
            registry=clients.registry,
            application=config.application,
            max_attempts=config.max_attempts,
        )

    def build_scanner(self, clients: ApiClients, dispatcher: Dispatcher) -> PeriodicScanner:
        return PeriodicScanner(
            dispatcher,
            clients.registry,
            self._config.application,
            interval=self._config.interval,
        )

    async def run_once(self) -> int:
        """Run a single full scan without connecting to the event bus."""
        async with ApiClients.open(self._config, session=self._session) as clients:
            scanner = self.build_scanner(clients, self.build_dispatcher(clients))
            return await scanner.scan_once()

    async def run(self) -> None:
        """Run until cancelled or the event bus is lost for good.

        Scanner and event adapter share one dispatcher and run concurrently
        without per-device locking. If the adapter stops on a malformed
        event the scanner keeps going.
        """
        config = self._config
        _logger.info("Starting operator for application %s", config.application)

        async with ApiClients.open(config, session=self._session) as clients:
            dispatcher = self.build_dispatcher(clients)
            scanner = self.build_scanner(clients, dispatcher)
            adapter = EventSourceAdapter(
                dispatcher,
                stop_on_malformed_event=config.stop_on_malformed_event,
            )

            runtime = MqttRuntime(config, loop=asyncio.get_running_loop())
            await runtime.start()
            scan_task = asyncio.create_task(scanner.run(), name="twinop-scanner")
            event_task = asyncio.create_task(adapter.run(runtime.messages()), name="twinop-events")
            try:
                await asyncio.gather(scan_task, event_task)
            finally:
                for task in (scan_task, event_task):
                    task.cancel()
                await asyncio.gather(scan_task, event_task, return_exceptions=True)
                await runtime.stop()
                _logger.info("Operator stopped")
