"""Event bus ingestion.

Registry change notifications arrive as structured-mode CloudEvents (JSON).
Only ``io.drogue.registry.v1`` events are relevant; their ``device``
extension attribute names the device to reconcile.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from twinop._constants import DEVICE_EXTENSION, REGISTRY_EVENT_TYPE
from twinop.exceptions import TwinOpError, TwinOpEventDecodeError
from twinop.reconcile.dispatcher import Dispatcher

_logger = logging.getLogger(__name__)


class CloudEventEnvelope(BaseModel):
    """Minimal CloudEvent envelope; extension attributes land in ``model_extra``."""

    model_config = ConfigDict(extra="allow", frozen=True)

    specversion: str
    id: str
    source: str
    type: str
    subject: str | None = None
    datacontenttype: str | None = None
    data: Any = None

    def extension(self, name: str) -> Any:
        return (self.model_extra or {}).get(name)


def decode_event(payload: bytes | str) -> CloudEventEnvelope:
    """Decode a structured-mode CloudEvent, raising :class:`TwinOpEventDecodeError`."""
    try:
        return CloudEventEnvelope.model_validate_json(payload)
    except ValidationError as exc:
        raise TwinOpEventDecodeError(f"Malformed event payload: {exc}") from exc


def extract_device(event: CloudEventEnvelope) -> str | None:
    """Device id of a registry event, ``None`` for other events or a missing extension."""
    if event.type != REGISTRY_EVENT_TYPE:
        return None
    device = event.extension(DEVICE_EXTENSION)
    # Extension values may be any CloudEvents scalar: string, boolean or integer.
    if isinstance(device, bool):
        return "true" if device else "false"
    if isinstance(device, int):
        return str(device)
    if not isinstance(device, str) or not device:
        return None
    return device


class EventSourceAdapter:
    """Feeds device ids from event bus messages to the dispatcher, one at a time."""

    def __init__(self, dispatcher: Dispatcher, *, stop_on_malformed_event: bool = True) -> None:
        self._dispatcher = dispatcher
        self._stop_on_malformed_event = stop_on_malformed_event

    async def handle_message(self, payload: bytes | str) -> str | None:
        """Process one message; returns the dispatched device id, if any.

        Raises :class:`TwinOpEventDecodeError` for undecodable payloads.
        Dispatch errors are logged and swallowed so the next message is
        still processed.
        """
        event = decode_event(payload)
        if event.type != REGISTRY_EVENT_TYPE:
            _logger.debug("Ignoring event %s of type %s", event.id, event.type)
            return None

        device = extract_device(event)
        if device is None:
            _logger.info("Registry event %s has no %r extension, skipping", event.id, DEVICE_EXTENSION)
            return None

        _logger.debug("Registry event %s for device %s", event.id, device)
        try:
            await self._dispatcher.dispatch(device)
        except TwinOpError:
            _logger.exception("Failed to reconcile device %s", device)
        return device

    async def run(self, source: AsyncIterable[bytes]) -> None:
        """Consume *source* strictly in order until it ends.

        A malformed payload ends the loop unless ``stop_on_malformed_event``
        is off. Errors raised by *source* itself (such as a lost event bus)
        propagate.
        """
        async for payload in source:
            try:
                await self.handle_message(payload)
            except TwinOpEventDecodeError as exc:
                if self._stop_on_malformed_event:
                    _logger.warning("Stopping event processing: %s", exc)
                    return
                _logger.warning("Skipping event: %s", exc)
