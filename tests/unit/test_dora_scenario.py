"""Behaviour of the Dora the Explorer scenario against a scripted server."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from explorerload.dsl.http_client import HttpClient, RequestMetric
from explorerload.dsl.loader import load_scenario
from explorerload.metrics.custom import metric_registry

if TYPE_CHECKING:
    from pathlib import Path

    from explorerload.dsl.scenario import ScenarioDefinition

EXPECTED_URL = "http://localhost:1323/dora-the-explorer?is_rainy_day=true"


@pytest.fixture
def dora(dora_scenario_path: Path) -> ScenarioDefinition:
    return load_scenario(dora_scenario_path)


async def _iterate(dora: ScenarioDefinition, times: int) -> list[RequestMetric]:
    """Run the scenario's task *times* times with one virtual user."""
    metrics: list[RequestMetric] = []
    instance = dora.cls()
    task = dora.tasks[0]
    async with HttpClient(
        base_url=dora.base_url,
        metric_callback=metrics.append,
        timeout=5.0,
    ) as client:
        for _ in range(times):
            await task.func(instance, client)
    return metrics


def _counter() -> float:
    return metric_registry.get("Error HTTP").value  # type: ignore[union-attr]


def _rate() -> float:
    return metric_registry.get("Error HTTP Rate").rate  # type: ignore[union-attr]


def _status_check():
    return metric_registry.checks.summarize()["status is 200"]


async def test_always_200_records_no_errors(dora, explorer_server):
    await _iterate(dora, 5)

    assert _counter() == 0
    assert _rate() == 0.0
    assert _status_check().passes == 5
    assert _status_check().fails == 0


async def test_each_404_adds_one(dora, explorer_server):
    explorer_server.default_status = 404

    await _iterate(dora, 1)
    assert _counter() == 1
    await _iterate(dora, 2)
    assert _counter() == 3
    assert _rate() == 1.0


async def test_nine_ok_one_error(dora, explorer_server):
    explorer_server.script(*([200] * 9), 500)

    await _iterate(dora, 10)

    assert _counter() == 1
    assert _rate() == pytest.approx(0.1)
    assert _status_check().passes == 9
    assert _status_check().fails == 1


async def test_counter_matches_failed_checks(dora, explorer_server):
    explorer_server.script(200, 503, 404, 200, 201, 200, 500)

    await _iterate(dora, 7)

    assert _counter() == _status_check().fails == 4
    assert metric_registry.get("Error HTTP Rate").total == 7  # type: ignore[union-attr]


async def test_requests_exact_url(dora, explorer_server):
    metrics = await _iterate(dora, 3)

    assert explorer_server.requests == ["/dora-the-explorer?is_rainy_day=true"] * 3
    assert [m.url for m in metrics] == [EXPECTED_URL] * 3
    assert all(m.method == "GET" for m in metrics)


async def test_unreachable_service_fails_check(dora, closed_explorer_port):
    metrics = await _iterate(dora, 2)

    assert _counter() == 2
    assert _rate() == 1.0
    assert all(m.status_code == 0 and m.error for m in metrics)
