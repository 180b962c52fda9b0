"""aiohttp-backed client that times each request and never raises on transport errors."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from explorerload._internal.config import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT
from explorerload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from explorerload._internal.types import Headers

logger = get_logger("dsl.http_client")

# Transport-level failures that become a failed Response instead of an exception.
_TRANSPORT_ERRORS = (aiohttp.ClientError, TimeoutError, OSError)


def _discard(metric: RequestMetric) -> None:
    pass


@dataclass
class RequestMetric:
    """One sample per request, fed to the session's collector.

    ``status_code`` is 0 and ``error`` is set when no response arrived.
    ``timestamp`` is the monotonic send time and ``latency_ms`` covers
    sending through reading the whole body.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    worker_id: int = 0

    @property
    def is_error(self) -> bool:
        """True for transport errors and 4xx/5xx responses."""
        return self.error is not None or self.status_code >= 400


@dataclass
class Response:
    """A fully-read HTTP response.

    A request that never got a response (connection refused, DNS failure,
    timeout) still produces a ``Response``, with ``status == 0`` and
    ``error`` describing the failure, so checks can evaluate it.

    Attributes:
        url: Requested URL.
        status: HTTP status code, or 0 when no response arrived.
        headers: Response headers.
        body: Raw response body.
        latency_ms: Time from sending the request to reading the body.
        error: ``"ExceptionType: message"`` for transport failures.
    """

    url: str
    status: int
    latency_ms: float
    headers: Headers = field(default_factory=dict)
    body: bytes = b""
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when a response arrived with a status below 400."""
        return self.error is None and 0 < self.status < 400

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class HttpClient:
    """Async client for one virtual user, backed by an ``aiohttp.ClientSession``.

    Every request is timed, its body read, and a ``RequestMetric`` passed
    to ``metric_callback``. Transport failures are returned as a
    ``Response`` with ``status == 0`` rather than raised; only cancellation
    propagates.

    Attributes:
        base_url: Prefix for every request path.
        headers: Headers applied to every request. Setup hooks may mutate
            this, e.g. to add an auth token.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        worker_id: int = 0,
        timeout: float = DEFAULT_TIMEOUT,
        pool_size: int = DEFAULT_POOL_SIZE,
    ) -> None:
        """*timeout* is the total per-request budget in seconds. *pool_size*
        caps open connections to the target. *metric_callback* receives a
        ``RequestMetric`` after every request.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: Headers = dict(headers or {})
        self._metric_callback = metric_callback or _discard
        self._worker_id = worker_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._pool_size = pool_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self._pool_size),
            timeout=self._timeout,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        """GET ``base_url + path``; the path may carry a query string."""
        return await self._request("GET", path, name=name, **kwargs)

    async def post(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        return await self._request("POST", path, name=name, **kwargs)

    async def put(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        return await self._request("PUT", path, name=name, **kwargs)

    async def patch(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        return await self._request("PATCH", path, name=name, **kwargs)

    async def delete(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        return await self._request("DELETE", path, name=name, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        **kwargs: Any,
    ) -> Response:
        """Send, read the body, report a ``RequestMetric``, and wrap the result.

        *name* groups the metric and defaults to *path*. A ``headers`` kwarg
        is layered over :attr:`headers`; everything else goes to aiohttp.
        """
        if self._session is None:
            msg = "HttpClient is not open; use it with 'async with'"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"
        request_headers = {**self.headers, **(kwargs.pop("headers", None) or {})}

        status_code = 0
        body = b""
        resp_headers: Headers = {}
        error: str | None = None

        start = time.monotonic()
        try:
            async with self._session.request(
                method,
                url,
                headers=request_headers,
                **kwargs,
            ) as resp:
                body = await resp.read()
                status_code = resp.status
                resp_headers = dict(resp.headers)
        except _TRANSPORT_ERRORS as exc:
            error = f"{type(exc).__name__}: {exc}"
            logger.debug("%s %s failed: %s", method, url, error)
        latency_ms = (time.monotonic() - start) * 1000

        self._metric_callback(
            RequestMetric(
                timestamp=start,
                name=name or path,
                method=method,
                url=url,
                status_code=status_code,
                latency_ms=latency_ms,
                content_length=len(body),
                error=error,
                worker_id=self._worker_id,
            )
        )

        return Response(
            url=url,
            status=status_code,
            latency_ms=latency_ms,
            headers=resp_headers,
            body=body,
            error=error,
        )
