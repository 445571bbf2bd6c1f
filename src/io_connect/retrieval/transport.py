"""HTTP transport: one request in, one parsed JSON body out."""

import asyncio
from functools import partial
from typing import Any, Dict, Optional, Protocol

import requests
from pydantic import BaseModel

from io_connect.constants import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from io_connect.errors import MalformedResponseError, TransportError
from io_connect.utils.logging import get_logger

logger = get_logger(__name__)


class TransportResponse(BaseModel):
    """Parsed HTTP response."""

    status: int
    data: Any = None


class Transport(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> TransportResponse:
        ...


class RequestsTransport:
    """
    Transport backed by a ``requests.Session``.

    The blocking call runs in the loop's default executor, so callers only
    see an awaitable.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verify: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify
        self.user_agent = user_agent

    def _get_headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]],
        params: Optional[Dict[str, Any]],
        json: Any,
    ) -> TransportResponse:
        try:
            response = self.session.request(
                method,
                url,
                headers=self._get_headers(headers),
                params=params,
                json=json,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}", url=url) from e

        if not response.ok:
            body: Any
            try:
                body = response.json()
            except ValueError:
                body = response.text[:300]
            raise TransportError(
                f"Request failed with status {response.status_code}",
                status=response.status_code,
                body=body,
                url=url,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from {url}: {response.text[:300]}") from e
        return TransportResponse(status=response.status_code, data=data)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> TransportResponse:
        logger.debug(f"HTTP {method} {url}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(self._send, method.upper(), url, headers, params, json)
        )

    def close(self) -> None:
        self.session.close()
