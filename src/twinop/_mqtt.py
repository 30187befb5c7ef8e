"""Internal MQTT runtime feeding event bus payloads into asyncio."""

from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import paho.mqtt.client as mqtt

from twinop.config import OperatorConfig, ReconnectPolicy
from twinop.exceptions import TwinOpConfigError, TwinOpEventBusError

_logger = logging.getLogger(__name__)

_TLS_SCHEMES = frozenset({"ssl", "mqtts", "tls"})


@dataclass(frozen=True)
class BrokerAddress:
    """Where to connect, derived from the configured MQTT URI."""

    host: str
    port: int
    tls: bool


def parse_mqtt_uri(uri: str, *, disable_tls: bool = False) -> BrokerAddress:
    """Parse ``tcp://host:port`` style URIs.

    TLS is used unless *disable_tls* is set; the default port follows
    from that (8883 with TLS, 1883 without).
    """
    value = uri.strip()
    if not value:
        raise TwinOpConfigError("MQTT URI is empty")

    scheme = ""
    if "://" in value:
        scheme, value = value.split("://", 1)
    if "/" in value:
        value = value.split("/", 1)[0]

    tls = not disable_tls
    if disable_tls and scheme.lower() in _TLS_SCHEMES:
        _logger.warning("MQTT URI scheme %s ignored, TLS is disabled", scheme)

    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return BrokerAddress(host=host, port=int(maybe_port), tls=tls)
    if not value:
        raise TwinOpConfigError(f"MQTT URI has no host: {uri!r}")
    return BrokerAddress(host=value, port=8883 if tls else 1883, tls=tls)


async def connect_with_policy(
    connect: Callable[[], Awaitable[Any]],
    policy: ReconnectPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    immediate: bool = False,
) -> int:
    """Call *connect* until it succeeds, waiting per *policy* between attempts.

    With *immediate* the first attempt is made without waiting. Returns
    the number of attempts used; raises :class:`TwinOpEventBusError`
    once the policy gives up.
    """
    attempts = 0
    last_error: BaseException | None = None

    if immediate:
        attempts += 1
        try:
            await connect()
            return attempts
        except OSError as exc:
            last_error = exc
            _logger.warning("MQTT connect failed: %s", exc)

    for delay in policy.delays():
        await sleep(delay)
        attempts += 1
        try:
            await connect()
            return attempts
        except OSError as exc:
            last_error = exc
            _logger.warning("MQTT reconnect attempt %d failed: %s", attempts, exc)

    raise TwinOpEventBusError(
        f"Error reconnecting to broker after {attempts} attempts: {last_error}"
    ) from last_error


class MqttRuntime:
    """Threaded paho-mqtt runtime that hands payloads to an asyncio queue.

    paho's own reconnect loop is disabled; when the connection drops the
    runtime reconnects following the configured :class:`ReconnectPolicy`
    and, once that gives up, raises :class:`TwinOpEventBusError` out of
    :meth:`messages`.
    """

    def __init__(
        self,
        config: OperatorConfig,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._config = config
        self._loop = loop
        self._logger = _logger
        self._broker = parse_mqtt_uri(config.mqtt_uri, disable_tls=config.disable_tls)
        self._queue: asyncio.Queue[bytes | TwinOpEventBusError] = asyncio.Queue()
        self._client: mqtt.Client | None = None
        self._running = False
        self._reconnect_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._config.mqtt_client_id,
            protocol=mqtt.MQTTv5,
            reconnect_on_failure=False,
        )
        client.enable_logger(self._logger)
        client.username_pw_set(self._config.user, self._config.token)

        if self._broker.tls:
            ca_path = self._config.ca_path
            ca_certs = ca_path if ca_path and Path(ca_path).is_file() else None
            if ca_path and ca_certs is None:
                self._logger.warning("CA bundle %s not found, using system trust store", ca_path)
            if self._config.insecure_tls:
                client.tls_set(ca_certs=ca_certs, cert_reqs=ssl.CERT_NONE)
                client.tls_insecure_set(True)
            else:
                client.tls_set(ca_certs=ca_certs)

        topic = self._config.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info("MQTT connected, subscribing topic=%s", topic)
            c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._logger.debug("Received PUBLISH topic=%s bytes=%d", msg.topic, len(msg.payload))
            self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.info("MQTT disconnected: %s", reason_code)
                self._loop.call_soon_threadsafe(self._connection_lost)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect
        return client

    async def start(self) -> None:
        """Connect (per the reconnect policy) and start the network loop."""
        await self.stop()
        client = self._build_client()
        self._client = client
        self._logger.info(
            "Connecting to MQTT host=%s port=%s tls=%s",
            self._broker.host,
            self._broker.port,
            self._broker.tls,
        )

        def connect() -> None:
            client.connect(self._broker.host, self._broker.port, keepalive=self._config.mqtt_keepalive)
            client.loop_start()

        await connect_with_policy(
            lambda: self._loop.run_in_executor(None, connect),
            self._config.reconnect,
            immediate=True,
        )
        self._running = True

    def _connection_lost(self) -> None:
        if not self._running or (self._reconnect_task is not None and not self._reconnect_task.done()):
            return
        self._reconnect_task = self._loop.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        client = self._client
        if client is None:
            return

        def reconnect() -> None:
            # The network thread exits on connection loss; restart it after reconnecting.
            client.loop_stop()
            client.reconnect()
            client.loop_start()

        try:
            attempts = await connect_with_policy(
                lambda: self._loop.run_in_executor(None, reconnect),
                self._config.reconnect,
            )
        except TwinOpEventBusError as exc:
            self._logger.warning("Giving up on MQTT broker: %s", exc)
            self._queue.put_nowait(exc)
            return
        self._logger.info("MQTT reconnected after %d attempt(s)", attempts)

    async def messages(self) -> AsyncIterator[bytes]:
        """Received payloads in arrival order; raises once the bus is lost."""
        while True:
            item = await self._queue.get()
            if isinstance(item, TwinOpEventBusError):
                raise item
            yield item

    async def stop(self) -> None:
        """Stop and disconnect the current MQTT client, if any."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done():
            task.cancel()

        if client is None:
            return

        def shutdown() -> None:
            try:
                if was_running:
                    self._logger.debug("MQTT disconnect requested")
                    client.disconnect()
            finally:
                client.loop_stop()
                self._logger.debug("MQTT network loop stopped")

        await self._loop.run_in_executor(None, shutdown)
