"""Registry endpoints: /api/registry/v1/apps/{app}/devices."""

from __future__ import annotations

from pydantic import TypeAdapter, ValidationError

from twinop._api._common import NOT_FOUND, build_path, parse_body, raise_for_status
from twinop._transport import Transport
from twinop.exceptions import TwinOpTransportError
from twinop.models.device import Device

_DEVICE_LIST = TypeAdapter(list[Device])


def devices_path(application: str) -> str:
    return build_path("api", "registry", "v1", "apps", application, "devices")


def device_path(application: str, name: str) -> str:
    return build_path("api", "registry", "v1", "apps", application, "devices", name)


async def list_devices(transport: Transport, application: str) -> list[Device] | None:
    """List all devices of *application*, ``None`` when the application is unknown."""
    response = await transport.request("GET", devices_path(application))
    if response.status == NOT_FOUND:
        return None
    raise_for_status(response)
    if response.body is None:
        return []
    try:
        return _DEVICE_LIST.validate_python(response.body)
    except ValidationError as exc:
        raise TwinOpTransportError(
            f"Unexpected device list payload from {response.endpoint}: {exc}",
            status_code=response.status,
            endpoint=response.endpoint,
        ) from exc


async def get_device(transport: Transport, application: str, name: str) -> Device | None:
    """Fetch a device, ``None`` when it does not exist."""
    response = await transport.request("GET", device_path(application, name))
    if response.status == NOT_FOUND:
        return None
    raise_for_status(response)
    return parse_body(Device, response)


async def update_device(transport: Transport, device: Device) -> None:
    """Write *device* back; 404 and 409 surface as their dedicated errors."""
    response = await transport.request(
        "PUT",
        device_path(device.application, device.name),
        payload=device.to_api(),
    )
    raise_for_status(response)
