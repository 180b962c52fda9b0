"""Shared test fixtures for the explorerload test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from explorerload.dsl.scenario import registry
from explorerload.metrics.custom import metric_registry
from explorerload.target.app import DEFAULT_PORT, EXPLORE_PATH, create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

DORA_SCENARIO = Path(__file__).resolve().parents[1] / "scenarios" / "dora_the_explorer.py"


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _clean_registries() -> Iterator[None]:
    """Every test starts without registered scenarios, metrics or checks."""
    registry.clear()
    metric_registry.clear()
    yield
    registry.clear()
    metric_registry.clear()


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def _port_in_use(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(("127.0.0.1", port)) == 0


# =============================================================================
# Echo HTTP Server handlers
# =============================================================================


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back request details as JSON."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "query": dict(request.query),
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        },
        status=200,
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


def _create_echo_app() -> web.Application:
    """Build the echo server app with all test routes."""
    app = web.Application()
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    return app


# =============================================================================
# Scripted explorer server
# =============================================================================


@dataclass
class ExplorerServer:
    """Serves GET /dora-the-explorer with a scripted sequence of statuses.

    Each request pops the next status from ``statuses``; once empty,
    ``default_status`` is used. Every received path and query string is
    appended to ``requests``.
    """

    statuses: deque[int] = field(default_factory=deque)
    default_status: int = 200
    requests: list[str] = field(default_factory=list)

    def script(self, *statuses: int) -> None:
        self.statuses.extend(statuses)

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(request.path_qs)
        status = self.statuses.popleft() if self.statuses else self.default_status
        return web.json_response({"status": status}, status=status)

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(EXPLORE_PATH, self.handle)
        return app


async def _start_site(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
    except OSError as exc:
        await runner.cleanup()
        pytest.skip(f"Cannot bind {host}:{port}: {exc}")
    return runner


# =============================================================================
# Async fixtures
# =============================================================================


@pytest.fixture
async def echo_server() -> AsyncIterator[str]:
    """Aiohttp echo server fixture.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    port = _get_free_port()
    runner = await _start_site(_create_echo_app(), "127.0.0.1", port)
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
async def explorer_server() -> AsyncIterator[ExplorerServer]:
    """Scripted explorer endpoint on localhost:1323, where the scenario points."""
    server = ExplorerServer()
    runner = await _start_site(server.create_app(), "127.0.0.1", DEFAULT_PORT)
    yield server
    await runner.cleanup()


@pytest.fixture
def closed_explorer_port() -> int:
    """Port 1323 with nothing listening on it."""
    if _port_in_use(DEFAULT_PORT):
        pytest.skip(f"Port {DEFAULT_PORT} is in use")
    return DEFAULT_PORT


@pytest.fixture
def dora_scenario_path() -> Path:
    return DORA_SCENARIO


# =============================================================================
# Sync fixtures for tests that block the main thread
# =============================================================================


def _serve_in_thread(
    app_factory: Callable[[], web.Application],
    host: str,
    port: int,
) -> Iterator[str]:
    """Run an aiohttp app in a background thread until the generator closes."""
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []
    errors: list[OSError] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(app_factory())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, host, port)
        try:
            loop.run_until_complete(site.start())
        except OSError as exc:
            errors.append(exc)
            started.set()
            loop.run_until_complete(runner.cleanup())
            loop.close()
            return
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    if errors:
        pytest.skip(f"Cannot bind {host}:{port}: {errors[0]}")

    yield f"http://{host}:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def sync_echo_server() -> Iterator[str]:
    """Echo server running in a background thread for sync tests."""
    yield from _serve_in_thread(_create_echo_app, "127.0.0.1", _get_free_port())


@pytest.fixture
def sync_dora_target() -> Iterator[str]:
    """The stand-in service on localhost:1323 with no simulated latency."""
    yield from _serve_in_thread(
        lambda: create_app(latency_scale=0.0),
        "127.0.0.1",
        DEFAULT_PORT,
    )


@pytest.fixture
def sync_failing_target() -> Iterator[ExplorerServer]:
    """Explorer endpoint on localhost:1323 that always answers 500."""
    server = ExplorerServer(default_status=500)
    for _url in _serve_in_thread(server.create_app, "127.0.0.1", DEFAULT_PORT):
        yield server


@pytest.fixture
def scenario_file(tmp_path: Path, sync_echo_server: str) -> Path:
    """Create a temporary scenario file pointing at the sync echo server."""
    code = f'''\
from __future__ import annotations

from explorerload import Counter, HttpClient, Rate, check, scenario, task

failures = Counter("Echo Failures")
failure_rate = Rate("Echo Failure Rate")


@scenario(
    name="Integration Test Scenario",
    base_url="{sync_echo_server}",
    think_time=(0.01, 0.02),
)
class TestScenario:

    @task(weight=1)
    async def get_echo(self, client: HttpClient) -> None:
        res = await client.get("/echo/test", name="Echo Test")
        passed = check(res, {{"status is 200": lambda r: r.status == 200}})
        failures.add(not passed)
        failure_rate.add(not passed)
'''
    path = tmp_path / "test_scenario.py"
    path.write_text(code)
    return path
