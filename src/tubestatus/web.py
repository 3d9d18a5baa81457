"""Read API served with aiohttp.

Handlers only read from the store; the poller started alongside them is the
only writer. CORS and static assets are left to whatever fronts the service.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from aiohttp import web

from tubestatus.client import TflClient
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import (
    TubeConnectionError,
    TubeDetailsLoadingError,
    TubeFetchError,
    TubeStatusError,
    TubeValidationError,
)
from tubestatus.ingestion.poller import StatusPoller
from tubestatus.query import get_line_history, get_station_history, parse_query_time
from tubestatus.state.store import IntervalStore
from tubestatus.station_details import StationDetailsLoader

_logger = logging.getLogger(__name__)


@dataclass
class ServiceState:
    """Everything the handlers share; filled in during startup."""

    config: TubeStatusConfig
    store: IntervalStore | None = None
    client: TflClient | None = None
    poller: StatusPoller | None = None
    station_details: StationDetailsLoader | None = None

    def require_store(self) -> IntervalStore:
        if self.store is None:
            raise TubeConnectionError("History store is not available")
        return self.store

    def require_station_details(self) -> StationDetailsLoader:
        if self.station_details is None:
            raise TubeDetailsLoadingError("Station details are not available yet")
        return self.station_details


SERVICE_KEY = web.AppKey("service", ServiceState)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


@web.middleware
async def _error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except TubeValidationError as exc:
        return _error(400, str(exc))
    except (TubeConnectionError, TubeDetailsLoadingError) as exc:
        _logger.warning("%s %s unavailable: %s", request.method, request.path, exc)
        return _error(503, str(exc))
    except TubeFetchError as exc:
        _logger.error("%s %s upstream failure: %s", request.method, request.path, exc)
        return _error(502, "Upstream status feed failed")
    except TubeStatusError as exc:
        _logger.error("Error serving %s %s: %s", request.method, request.path, exc)
        return _error(500, "Internal error")
    except web.HTTPException:
        raise
    except Exception:
        _logger.exception("Unexpected error serving %s %s", request.method, request.path)
        return _error(500, "Internal error")


def _query_window(request: web.Request) -> tuple[datetime, datetime]:
    start = parse_query_time(request.query.get("from"), field="from")
    end = parse_query_time(request.query.get("to"), field="to")
    return start, end


async def health(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    poller = service.poller
    return web.json_response(
        {
            "status": "ok",
            "store": service.store is not None and service.store.is_open,
            "poller": poller is not None and poller.is_running,
        }
    )


async def line_history(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    start, end = _query_window(request)
    history = await get_line_history(
        service.require_store(),
        start,
        end,
        max_window=service.config.max_query_window,
    )
    return web.json_response({line_id: h.model_dump(mode="json", by_alias=True) for line_id, h in history.items()})


async def station_history(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    start, end = _query_window(request)
    history = await get_station_history(
        service.require_store(),
        start,
        end,
        max_window=service.config.max_query_window,
    )
    return web.json_response({sid: h.model_dump(mode="json", by_alias=True) for sid, h in history.items()})


async def station_details(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    details = await service.require_station_details().get_details()
    return web.json_response({sid: {"name": d.name} for sid, d in details.items()})


async def _warm_station_details(loader: StationDetailsLoader) -> None:
    with contextlib.suppress(TubeStatusError):
        await loader.get_details()


def _lifecycle(
    *,
    store: IntervalStore | None,
    client: TflClient | None,
    start_poller: bool,
) -> Callable[[web.Application], AsyncIterator[None]]:
    async def ctx(app: web.Application) -> AsyncIterator[None]:
        service = app[SERVICE_KEY]
        config = service.config
        async with contextlib.AsyncExitStack() as stack:
            if store is None:
                # Failure here aborts startup: the store is the one fatal dependency.
                service.store = await stack.enter_async_context(IntervalStore.from_config(config))
            else:
                service.store = store
            service.client = client if client is not None else await stack.enter_async_context(TflClient(config))

            service.station_details = StationDetailsLoader(service.client.fetch_station_details)
            warm = asyncio.create_task(_warm_station_details(service.station_details))

            if start_poller:
                service.poller = StatusPoller(
                    service.client,
                    service.store,
                    interval=config.poll_interval,
                    poll_stations=config.poll_stations,
                )
                service.poller.start()
            try:
                yield
            finally:
                if service.poller is not None:
                    await service.poller.stop()
                warm.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await warm
                service.store = None

    return ctx


def create_app(
    config: TubeStatusConfig,
    *,
    store: IntervalStore | None = None,
    client: TflClient | None = None,
    start_poller: bool = True,
) -> web.Application:
    """Build the read API.

    Stores and clients passed in are used as-is and left open at shutdown;
    ones created here are closed with the application.
    """
    app = web.Application(middlewares=[_error_middleware])
    app[SERVICE_KEY] = ServiceState(config=config)
    app.cleanup_ctx.append(_lifecycle(store=store, client=client, start_poller=start_poller))
    app.router.add_get("/health", health)
    app.router.add_get("/api/v1/history", line_history)
    app.router.add_get("/api/v1/station-history", station_history)
    app.router.add_get("/api/v1/station-details", station_details)
    return app


def run(config: TubeStatusConfig) -> None:
    web.run_app(create_app(config), host=config.host, port=config.port)
