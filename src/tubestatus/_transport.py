"""HTTP transport for the TfL unified API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from tubestatus._constants import USER_AGENT
from tubestatus._redact import redact_params
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeFetchError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> Any:
        ...


class HttpTransport:
    """GET-only JSON transport that appends the application key."""

    def __init__(self, config: TubeStatusConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _build_params(self, params: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(params or {})
        if self._config.app_key:
            merged["app_key"] = self._config.app_key
        return merged

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> Any:
        """Fetch *endpoint* and return the decoded JSON body.

        Raises :class:`TubeFetchError` on network failures, non-200
        responses and bodies that are not JSON.
        """
        url = f"{self._config.base_url}{endpoint}"
        query = self._build_params(params)
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s params=%s", url, redact_params(query))

        try:
            async with self._http.get(url, params=query, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise TubeFetchError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except TubeFetchError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TubeFetchError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TubeFetchError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc
