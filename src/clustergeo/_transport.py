"""JSON-over-HTTP transport shared by the geocoder and the backend RPCs."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from clustergeo._redact import redact_for_log
from clustergeo.exceptions import ClusterGeoRateLimitError, ClusterGeoTransportError

_logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


class Transport(Protocol):
    """Structural transport interface used by the endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (:class:`HttpTransport`) concrete.
    """

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any: ...

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any: ...


class HttpTransport:
    """aiohttp transport that maps failures onto the clustergeo exceptions.

    * HTTP 429 → :class:`ClusterGeoRateLimitError`
    * any other non-2xx status, network error or undecodable body →
      :class:`ClusterGeoTransportError`
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float | None = None,
        trace: bool = False,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self._trace = trace

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._request("GET", url, params=params, headers=headers)

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._request("POST", url, payload=payload, headers=headers)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        request_headers = {"accept": "application/json", **(headers or {})}
        _logger.debug("%s %s", method, url)
        if self._trace:
            _logger.debug(
                "%s %s params=%s headers=%s body=%s",
                method,
                url,
                redact_for_log(params),
                redact_for_log(request_headers),
                redact_for_log(payload),
            )

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params) if params else None,
                json=dict(payload) if payload is not None else None,
                headers=request_headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise ClusterGeoTransportError(f"Request to {url} failed: {exc!r}", endpoint=url) from exc

        if status == HTTP_TOO_MANY_REQUESTS:
            raise ClusterGeoRateLimitError(f"HTTP 429 from {url}", status_code=status, endpoint=url)
        if not 200 <= status < 300:
            raise ClusterGeoTransportError(
                f"HTTP {status} from {url}: {text[:200]}",
                status_code=status,
                endpoint=url,
            )

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ClusterGeoTransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                status_code=status,
                endpoint=url,
            ) from exc

        if self._trace:
            _logger.debug("%s %s -> %d %s", method, url, status, redact_for_log(body))
        return body
