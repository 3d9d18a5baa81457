"""Masking of credentials in logged request parameters.

The TfL application key travels as a query parameter, so request params
must pass through :func:`redact_params` before they are logged.
"""

from __future__ import annotations

from collections.abc import Mapping

REDACTED = "<redacted>"

_CREDENTIAL_PARAMS: frozenset[str] = frozenset({"app_key", "app_id", "api_key", "apikey"})


def redact_params(params: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of *params* with credential values masked (keys match case-insensitively)."""
    return {key: REDACTED if key.lower() in _CREDENTIAL_PARAMS else value for key, value in params.items()}
