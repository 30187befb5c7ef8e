"""JSON-over-HTTP transport shared by the twin and registry clients."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from twinop._constants import USER_AGENT
from twinop._redact import redact_for_log
from twinop.exceptions import TwinOpTransportError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    """Status and decoded JSON body of one API call."""

    status: int
    body: Any
    endpoint: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> ApiResponse:
        ...


class HttpTransport:
    """aiohttp transport adding authentication and JSON handling."""

    def __init__(
        self,
        base_url: str,
        http_session: aiohttp.ClientSession,
        *,
        user: str | None = None,
        token: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session
        self._auth = aiohttp.BasicAuth(user, token or "") if user else None

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> ApiResponse:
        """Send *payload* (if any) as JSON and decode the JSON response.

        Non-2xx statuses are returned, not raised; the endpoint modules
        decide which statuses are meaningful. Network failures, including
        timeouts, and undecodable success bodies raise :class:`TwinOpTransportError`.
        """
        url = f"{self._base_url}{endpoint}"
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }

        _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                json=dict(payload) if payload is not None else None,
                headers=headers,
                auth=self._auth,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except aiohttp.ClientError as exc:
            raise TwinOpTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc
        except TimeoutError as exc:
            # aiohttp signals its request timeouts with the builtin TimeoutError.
            raise TwinOpTransportError(
                f"Request to {endpoint} timed out",
                endpoint=endpoint,
            ) from exc

        body: Any = None
        if text.strip():
            try:
                body = json.loads(text)
            except json.JSONDecodeError as exc:
                if 200 <= status < 300:
                    raise TwinOpTransportError(
                        f"Invalid JSON from {endpoint}: {text[:200]}",
                        status_code=status,
                        endpoint=endpoint,
                    ) from exc
                # Error pages are frequently not JSON; keep the text for the message.
                body = text[:200]

        _logger.debug("%s %s -> %s", method, url, status)
        return ApiResponse(status=status, body=body, endpoint=endpoint)
