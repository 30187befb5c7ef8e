"""Twin service endpoints: /api/v1alpha1/things."""

from __future__ import annotations

from twinop._api._common import NOT_FOUND, build_path, parse_body, raise_for_status
from twinop._transport import Transport
from twinop.models.thing import Thing

_BASE = ("api", "v1alpha1", "things")


def thing_path(application: str, name: str) -> str:
    return build_path(*_BASE, application, "things", name)


async def get_thing(transport: Transport, application: str, name: str) -> Thing | None:
    """Fetch a Thing, ``None`` when it does not exist."""
    response = await transport.request("GET", thing_path(application, name))
    if response.status == NOT_FOUND:
        return None
    raise_for_status(response)
    return parse_body(Thing, response)


async def create_thing(transport: Transport, thing: Thing) -> None:
    response = await transport.request("POST", build_path(*_BASE), payload=thing.to_api())
    raise_for_status(response)


async def update_thing(transport: Transport, thing: Thing) -> None:
    response = await transport.request("PUT", build_path(*_BASE), payload=thing.to_api())
    raise_for_status(response)


async def delete_thing(transport: Transport, application: str, name: str) -> bool:
    """Delete a Thing, returning whether it existed."""
    response = await transport.request("DELETE", thing_path(application, name))
    if response.status == NOT_FOUND:
        return False
    raise_for_status(response)
    return True
