"""Tests for the instrumented HTTP client, Response and RequestMetric."""

from __future__ import annotations

import pytest

from explorerload.dsl.http_client import HttpClient, RequestMetric, Response


def _metric(**overrides: object) -> RequestMetric:
    fields: dict[str, object] = {
        "timestamp": 1000.0,
        "name": "explore",
        "method": "GET",
        "url": "http://localhost:1323/dora-the-explorer",
        "status_code": 200,
        "latency_ms": 42.5,
        "content_length": 64,
    }
    fields.update(overrides)
    return RequestMetric(**fields)  # type: ignore[arg-type]


class TestRequestMetric:
    def test_defaults(self):
        metric = _metric()
        assert metric.error is None
        assert metric.worker_id == 0
        assert metric.is_error is False

    @pytest.mark.parametrize(
        ("status", "error", "expected"),
        [
            (200, None, False),
            (302, None, False),
            (404, None, True),
            (500, None, True),
            (0, "ClientConnectorError: refused", True),
        ],
    )
    def test_is_error(self, status: int, error: str | None, expected: bool):
        assert _metric(status_code=status, error=error).is_error is expected


class TestResponse:
    def test_ok(self):
        assert Response(url="u", status=200, latency_ms=1.0).ok
        assert not Response(url="u", status=404, latency_ms=1.0).ok
        assert not Response(url="u", status=0, latency_ms=1.0, error="TimeoutError: ").ok

    def test_body_helpers(self):
        resp = Response(url="u", status=200, latency_ms=1.0, body=b'{"message": "hola"}')
        assert resp.text() == '{"message": "hola"}'
        assert resp.json() == {"message": "hola"}


class TestHttpClient:
    @pytest.mark.parametrize("method", ["get", "post", "put", "patch", "delete"])
    async def test_methods_emit_one_metric(self, echo_server: str, method: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(base_url=echo_server, metric_callback=metrics.append) as client:
            resp = await getattr(client, method)("/echo/trip", name="Trip")

        assert resp.status == 200
        assert resp.json()["method"] == method.upper()
        assert len(metrics) == 1
        assert metrics[0].method == method.upper()
        assert metrics[0].name == "Trip"
        assert metrics[0].status_code == 200
        assert metrics[0].latency_ms > 0
        assert metrics[0].content_length == len(resp.body)

    async def test_default_name_is_path(self, echo_server: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(base_url=echo_server, metric_callback=metrics.append) as client:
            await client.get("/echo/unnamed")

        assert metrics[0].name == "/echo/unnamed"

    async def test_url_and_query_are_sent_verbatim(self, echo_server: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(
            base_url=f"{echo_server}/",
            metric_callback=metrics.append,
        ) as client:
            resp = await client.get("/echo/dora-the-explorer?is_rainy_day=true")

        data = resp.json()
        assert data["path"] == "/echo/dora-the-explorer"
        assert data["query"] == {"is_rainy_day": "true"}
        assert resp.url == f"{echo_server}/echo/dora-the-explorer?is_rainy_day=true"
        assert metrics[0].url == resp.url

    async def test_headers_merge(self, echo_server: str):
        async with HttpClient(
            base_url=echo_server,
            headers={"X-Map": "folded", "X-Backpack": "open"},
        ) as client:
            client.headers["Authorization"] = "Bearer swiper-no-swiping"
            resp = await client.get("/echo/headers", headers={"X-Backpack": "closed"})

        headers = resp.json()["headers"]
        assert headers["X-Map"] == "folded"
        assert headers["X-Backpack"] == "closed"
        assert headers["Authorization"] == "Bearer swiper-no-swiping"

    async def test_error_status_is_returned_not_raised(self, echo_server: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(base_url=echo_server, metric_callback=metrics.append) as client:
            resp = await client.get("/error?status=503")

        assert resp.status == 503
        assert resp.error is None
        assert metrics[0].is_error

    async def test_worker_id_in_metric(self, echo_server: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(
            base_url=echo_server,
            metric_callback=metrics.append,
            worker_id=7,
        ) as client:
            await client.get("/echo/worker")

        assert metrics[0].worker_id == 7

    async def test_connection_failure_returns_failed_response(self):
        metrics: list[RequestMetric] = []

        async with HttpClient(
            base_url="http://127.0.0.1:1",
            metric_callback=metrics.append,
            timeout=1.0,
        ) as client:
            resp = await client.get("/dora-the-explorer", name="Fail")

        assert resp.status == 0
        assert resp.error is not None
        assert not resp.ok
        assert len(metrics) == 1
        assert metrics[0].error == resp.error
        assert metrics[0].status_code == 0

    async def test_timeout_returns_failed_response(self, echo_server: str):
        async with HttpClient(base_url=echo_server, timeout=0.2) as client:
            resp = await client.get("/delay?delay=2")

        assert resp.status == 0
        assert resp.error is not None
        assert resp.error.startswith(("TimeoutError", "ServerTimeoutError"))

    async def test_context_manager_required(self):
        client = HttpClient(base_url="http://localhost:1323")
        with pytest.raises(RuntimeError, match="async with"):
            await client.get("/dora-the-explorer")
