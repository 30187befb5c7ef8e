"""Async clients for the twin service and the device registry.

Both clients are thin: they forward to the endpoint modules in
:mod:`twinop._api` over a shared :class:`~twinop._transport.Transport`.
Reads return ``None`` for missing objects; writes raise
:class:`~twinop.exceptions.TwinOpNotFoundError`,
:class:`~twinop.exceptions.TwinOpConflictError` or
:class:`~twinop.exceptions.TwinOpApiError`.

Usage::

    async with ApiClients.open(config) as clients:
        thing = await clients.things.get_thing("app", "device-1")
"""

from __future__ import annotations

from typing import Any, Protocol

import aiohttp

from twinop._api import devices as _devices_api
from twinop._api import things as _things_api
from twinop._transport import HttpTransport, Transport
from twinop.config import OperatorConfig
from twinop.exceptions import TwinOpError
from twinop.models.device import Device
from twinop.models.thing import Thing


class ThingStore(Protocol):
    """Twin service operations the reconciler relies on."""

    async def get_thing(self, application: str, name: str) -> Thing | None:
        ...

    async def create_thing(self, thing: Thing) -> None:
        ...

    async def update_thing(self, thing: Thing) -> None:
        ...

    async def delete_thing(self, application: str, name: str) -> bool:
        ...


class DeviceRegistry(Protocol):
    """Registry operations the reconciler, dispatcher and scanner rely on."""

    async def list_devices(self, application: str) -> list[Device] | None:
        ...

    async def get_device(self, application: str, name: str) -> Device | None:
        ...

    async def update_device(self, device: Device) -> None:
        ...


class TwinClient:
    """Client for the twin service Thing API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def get_thing(self, application: str, name: str) -> Thing | None:
        return await _things_api.get_thing(self._transport, application, name)

    async def create_thing(self, thing: Thing) -> None:
        await _things_api.create_thing(self._transport, thing)

    async def update_thing(self, thing: Thing) -> None:
        await _things_api.update_thing(self._transport, thing)

    async def delete_thing(self, application: str, name: str) -> bool:
        return await _things_api.delete_thing(self._transport, application, name)


class RegistryClient:
    """Client for the device registry API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def list_devices(self, application: str) -> list[Device] | None:
        return await _devices_api.list_devices(self._transport, application)

    async def get_device(self, application: str, name: str) -> Device | None:
        return await _devices_api.get_device(self._transport, application, name)

    async def update_device(self, device: Device) -> None:
        await _devices_api.update_device(self._transport, device)


class ApiClients:
    """Twin and registry clients sharing one HTTP session.

    The session is created on enter and closed on exit unless an external
    one was passed in.
    """

    def __init__(
        self,
        config: OperatorConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._things: TwinClient | None = None
        self._registry: RegistryClient | None = None

    @classmethod
    def open(cls, config: OperatorConfig, *, session: aiohttp.ClientSession | None = None) -> ApiClients:
        return cls(config, session=session)

    async def __aenter__(self) -> ApiClients:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        config = self._config
        self._registry = RegistryClient(
            HttpTransport(config.api_url, self._http_session, user=config.user, token=config.token)
        )
        self._things = TwinClient(
            HttpTransport(config.resolved_twin_api_url, self._http_session, user=config.user, token=config.token)
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None
        self._things = None
        self._registry = None

    @property
    def things(self) -> TwinClient:
        if self._things is None:
            raise TwinOpError("Clients not initialized. Use 'async with ApiClients.open(...) as clients:'")
        return self._things

    @property
    def registry(self) -> RegistryClient:
        if self._registry is None:
            raise TwinOpError("Clients not initialized. Use 'async with ApiClients.open(...) as clients:'")
        return self._registry
