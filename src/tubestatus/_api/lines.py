"""Line status endpoint."""

from __future__ import annotations

import logging
from typing import Any

from tubestatus._constants import line_status_path
from tubestatus._transport import Transport
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import TubeFetchError

_logger = logging.getLogger(__name__)


async def fetch_line_statuses(config: TubeStatusConfig, transport: Transport) -> dict[str, dict[str, Any]]:
    """Fetch the status document of every line, keyed by line id.

    Documents are returned untouched; items without a string ``id`` are
    skipped.
    """
    endpoint = line_status_path(config.modes)
    decoded = await transport.get_json(endpoint)
    if not isinstance(decoded, list):
        raise TubeFetchError(f"Expected a list of lines from {endpoint}", endpoint=endpoint)

    statuses: dict[str, dict[str, Any]] = {}
    for item in decoded:
        line_id = item.get("id") if isinstance(item, dict) else None
        if not isinstance(line_id, str) or not line_id:
            _logger.debug("Skipping line item without id from %s", endpoint)
            continue
        statuses[line_id] = item
    return statuses
