"""HTTP transport shared by the RPC, bundler and paymaster clients."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import SoneiumError

logger = logging.getLogger(__name__)


class HTTPTransport:
    """
    Lazily created ``httpx.AsyncClient`` with a wall-clock deadline per request.

    The deadline covers the whole exchange (connect, send, read); when it
    expires the in-flight request is cancelled and an ``RPC_TIMEOUT`` error is
    raised.
    """

    def __init__(
        self,
        timeout_seconds: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds, connect=min(10.0, self.timeout_seconds)),
                transport=self._transport,
            )
        return self._client

    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: Optional[float] = None,
        method: Optional[str] = None,
    ) -> httpx.Response:
        """POST a JSON body, raising ``RPC_TIMEOUT`` once the deadline passes."""
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        client = self._get_client()
        try:
            return await asyncio.wait_for(
                client.post(url, json=payload, headers=request_headers, timeout=timeout),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.debug("Request to %s exceeded %.3fs", url, timeout)
            raise SoneiumError.timeout(url, timeout, method=method) from None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def parse_json(response: httpx.Response) -> Any:
    """Response body as JSON, or the raw text when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text
