"""Dora the Explorer: hammer the rainy-day journey and count HTTP failures.

Every iteration sends one GET, checks for a 200, and records the failure
(or not) into both error metrics. Run the stand-in service and the test:

    explorerload target
    explorerload run scenarios/dora_the_explorer.py --vus 10 --duration 30s
"""

from __future__ import annotations

from explorerload import Counter, HttpClient, Rate, Response, check, scenario, task

error_counter = Counter("Error HTTP")
error_rate = Rate("Error HTTP Rate")


def _status_is_200(res: Response) -> bool:
    return res.status == 200


@scenario(
    name="Dora the Explorer",
    base_url="http://localhost:1323",
)
class DoraTheExplorer:
    """One rainy-day expedition per iteration."""

    @task()
    async def explore(self, client: HttpClient) -> None:
        res = await client.get("/dora-the-explorer?is_rainy_day=true")

        passed = check(res, {"status is 200": _status_is_200})

        error_counter.add(not passed)
        error_rate.add(not passed)
