"""Local stand-in for the Dora the Explorer service.

Serves ``GET /dora-the-explorer`` on port 1323 so the scenario can run
without the real backend. The handler walks the same journey as the real
service (tree house, forest, lake, pyramid, sand castle) with the same
simulated step latencies, scaled by ``latency_scale``.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from aiohttp import web

from explorerload._internal.logging import get_logger

if TYPE_CHECKING:
    from aiohttp.typedefs import Handler

logger = get_logger("target.app")

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 1323
EXPLORE_PATH = "/dora-the-explorer"

_LATENCY_SCALE_KEY = web.AppKey("latency_scale", float)

# Simulated step durations in seconds.
_TREE_HOUSE = 0.002
_LAKE = 0.010
_LAKE_RAINY_EXTRA = 0.020
# Raincoat service hop: availability lookup plus preparing the raincoat
_RAINCOAT_SERVICE = 0.010 + 0.020
_RAINCOAT_DETOUR = 0.100
_PYRAMID = 0.010
_SAND_CASTLE = 0.003


def is_rainy_day(value: str | None) -> bool:
    """Interpret the ``is_rainy_day`` query parameter ("true" or "1")."""
    return (value or "").strip().lower() in ("true", "1")


def journey_seconds(*, rainy: bool) -> float:
    """Total simulated latency of one journey, before scaling."""
    total = _TREE_HOUSE + _LAKE + _PYRAMID + _SAND_CASTLE
    if rainy:
        total += _LAKE_RAINY_EXTRA + _RAINCOAT_SERVICE + _RAINCOAT_DETOUR
    return total


async def _explore(request: web.Request) -> web.Response:
    rainy = is_rainy_day(request.query.get("is_rainy_day"))
    scale = request.app[_LATENCY_SCALE_KEY]

    delay = journey_seconds(rainy=rainy) * scale
    if delay > 0:
        await asyncio.sleep(delay)

    weather = "rainy day" if rainy else "clear weather"
    return web.json_response({"message": f"we arrived in sand castle on a {weather}"})


@web.middleware
async def _access_log(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    start = time.monotonic()
    response = await handler(request)
    logger.debug(
        "handle request: method=%s endpoint=%s status=%d duration=%.2fms",
        request.method,
        request.path_qs,
        response.status,
        (time.monotonic() - start) * 1000,
    )
    return response


def create_app(latency_scale: float = 1.0) -> web.Application:
    """Build the stand-in application.

    Args:
        latency_scale: Multiplier on the simulated journey latency.
            0 answers immediately.

    Raises:
        ValueError: If latency_scale is negative.
    """
    if latency_scale < 0:
        msg = f"latency_scale must be non-negative, got {latency_scale}"
        raise ValueError(msg)

    app = web.Application(middlewares=[_access_log])
    app[_LATENCY_SCALE_KEY] = latency_scale
    app.router.add_get(EXPLORE_PATH, _explore)
    return app


def run_target(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    latency_scale: float = 1.0,
) -> None:
    """Serve the stand-in until interrupted."""
    logger.info("starting target service on %s:%d", host, port)
    web.run_app(
        create_app(latency_scale=latency_scale),
        host=host,
        port=port,
        print=None,
    )
