from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tubestatus._api.lines import fetch_line_statuses
from tubestatus._api.stations import fetch_station_details, fetch_station_disruptions
from tubestatus.client import TflClient
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeFetchError, TubeStatusError


class _StaticTransport:
    def __init__(self, payload: Any) -> None:
        self._payload = payload
        self.requested: list[str] = []

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> Any:
        self.requested.append(endpoint)
        return self._payload


def _config(**overrides: Any) -> TubeStatusConfig:
    overrides.setdefault("modes", ("tube", "dlr"))
    return TubeStatusConfig(**overrides)


@pytest.mark.asyncio
async def test_line_statuses_are_keyed_by_id() -> None:
    transport = _StaticTransport(
        [
            {"id": "victoria", "lineStatuses": [{"statusSeverity": 10}]},
            {"name": "no id"},
            "garbage",
            {"id": "dlr", "lineStatuses": []},
        ]
    )

    statuses = await fetch_line_statuses(_config(), transport)

    assert transport.requested == ["/Line/Mode/tube,dlr/Status"]
    assert list(statuses) == ["victoria", "dlr"]
    assert statuses["victoria"]["lineStatuses"] == [{"statusSeverity": 10}]


@pytest.mark.asyncio
async def test_non_list_line_response_is_a_fetch_error() -> None:
    with pytest.raises(TubeFetchError) as exc_info:
        await fetch_line_statuses(_config(), _StaticTransport({"message": "nope"}))

    assert exc_info.value.endpoint == "/Line/Mode/tube,dlr/Status"


@pytest.mark.asyncio
async def test_disruptions_grouped_by_station_in_feed_order() -> None:
    transport = _StaticTransport(
        [
            {"stationAtcoCode": "940GZZLUVIC", "type": "Information", "description": "first"},
            {"atcoCode": "940GZZLUOXC", "type": "Closure"},
            {"stationAtcoCode": "940GZZLUVIC", "atcoCode": "9400ZZLUVIC1", "type": "Closure", "description": "second"},
            {"type": "Closure"},
        ]
    )

    grouped = await fetch_station_disruptions(_config(), transport)

    assert transport.requested == ["/StopPoint/Mode/tube,dlr/Disruption"]
    assert list(grouped) == ["940GZZLUVIC", "940GZZLUOXC"]
    assert [r["description"] for r in grouped["940GZZLUVIC"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_station_details_from_stop_points() -> None:
    transport = _StaticTransport(
        {
            "stopPoints": [
                {"naptanId": "940GZZLUVIC", "commonName": "Victoria Underground Station"},
                {"naptanId": "9400ZZLUVIC1", "stationNaptan": "940GZZLUVIC", "commonName": "Victoria"},
                {"naptanId": "940GZZLUOXC", "commonName": "Oxford Circus Underground Station"},
                {"naptanId": "nameless"},
            ]
        }
    )

    details = await fetch_station_details(_config(), transport)

    assert transport.requested == ["/StopPoint/Mode/tube,dlr"]
    assert {k: v.name for k, v in details.items()} == {
        "940GZZLUVIC": "Victoria Underground Station",
        "940GZZLUOXC": "Oxford Circus Underground Station",
    }


@pytest.mark.asyncio
async def test_client_requires_context_manager() -> None:
    client = TflClient(_config())

    with pytest.raises(TubeStatusError):
        await client.fetch_line_statuses()


@pytest.mark.asyncio
async def test_http_transport_sends_app_key_and_maps_errors() -> None:
    seen: list[Mapping[str, str]] = []

    async def line_status(request: web.Request) -> web.Response:
        seen.append(dict(request.query))
        return web.json_response([{"id": "victoria", "lineStatuses": []}])

    async def failing(_request: web.Request) -> web.Response:
        return web.Response(status=429, text="Too many requests")

    async def not_json(_request: web.Request) -> web.Response:
        return web.Response(text="<html>maintenance</html>")

    app = web.Application()
    app.router.add_get("/Line/Mode/tube/Status", line_status)
    app.router.add_get("/StopPoint/Mode/tube/Disruption", failing)
    app.router.add_get("/StopPoint/Mode/tube", not_json)

    async with TestServer(app) as server:
        config = TubeStatusConfig(app_key="secret", base_url=str(server.make_url("")).rstrip("/"), modes=("tube",))
        async with TflClient(config) as client:
            statuses = await client.fetch_line_statuses()

            with pytest.raises(TubeFetchError) as exc_info:
                await client.fetch_station_disruptions()
            assert exc_info.value.status_code == 429

            with pytest.raises(TubeFetchError):
                await client.fetch_station_details()

    assert list(statuses) == ["victoria"]
    assert seen == [{"app_key": "secret"}]


@pytest.mark.asyncio
async def test_http_transport_wraps_connection_failures() -> None:
    # Nothing listens on port 9 locally.
    config = TubeStatusConfig(base_url="http://127.0.0.1:9", modes=("tube",))
    async with TflClient(config) as client:
        with pytest.raises(TubeFetchError):
            await client.fetch_line_statuses()
