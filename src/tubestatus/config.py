"""Service configuration for tubestatus."""

from __future__ import annotations

import dataclasses
import os
from datetime import timedelta
from typing import Any

from tubestatus._constants import (
    BASE_URL,
    DEFAULT_DATABASE_PATH,
    DEFAULT_MODES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POOL_SIZE,
    DEFAULT_POOL_TIMEOUT,
    LINE_IGNORED_KEYS,
    MAX_QUERY_DAYS,
    STATION_IGNORED_KEYS,
)
from tubestatus.exceptions import TubeConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_number(env_key: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise TubeConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TubeStatusConfig:
    """Service configuration.

    Parameters
    ----------
    app_key : str or None
        TfL unified API application key. Anonymous access works but is
        heavily rate limited.
    base_url : str
        API base URL.
    modes : tuple of str
        Transport modes to poll (joined into the endpoint path).
    database_path : str
        SQLite file holding the history tables. The parent directory is
        created on startup.
    pool_size : int
        Number of pooled store connections shared by the poller and the
        read API.
    pool_timeout : float
        Seconds to wait for a pooled connection before failing.
    poll_interval : float
        Seconds between poll ticks.
    poll_stations : bool
        Also poll station disruptions (the line feed is always polled).
    max_query_days : int
        Widest history window a caller may request.
    line_ignored_keys : frozenset of str
        Volatile keys ignored when comparing line documents.
    station_ignored_keys : frozenset of str
        Volatile keys ignored when comparing station disruption documents.
    host : str
        Bind address of the read API.
    port : int
        Port of the read API.
    """

    app_key: str | None = None
    base_url: str = BASE_URL
    modes: tuple[str, ...] = DEFAULT_MODES
    database_path: str = DEFAULT_DATABASE_PATH
    pool_size: int = DEFAULT_POOL_SIZE
    pool_timeout: float = DEFAULT_POOL_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_stations: bool = True
    max_query_days: int = MAX_QUERY_DAYS
    line_ignored_keys: frozenset[str] = LINE_IGNORED_KEYS
    station_ignored_keys: frozenset[str] = STATION_IGNORED_KEYS
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000

    def __post_init__(self) -> None:
        if self.pool_size < 1:
            raise TubeConfigError(f"pool_size must be at least 1, got {self.pool_size}")
        if self.poll_interval <= 0:
            raise TubeConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.max_query_days < 1:
            raise TubeConfigError(f"max_query_days must be at least 1, got {self.max_query_days}")
        if not self.modes:
            raise TubeConfigError("at least one transport mode is required")

    @property
    def max_query_window(self) -> timedelta:
        return timedelta(days=self.max_query_days)

    @classmethod
    def from_env(cls, **overrides: Any) -> TubeStatusConfig:
        """Create configuration from environment variables.

        Reads ``TUBESTATUS_*`` variables. ``TFL_APP_KEY`` is accepted as
        a fallback for the API key. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TubeStatusConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        app_key = env.get("TUBESTATUS_APP_KEY") or env.get("TFL_APP_KEY")
        if app_key:
            config_kwargs["app_key"] = app_key

        _ENV_STR_MAP = {
            "TUBESTATUS_BASE_URL": "base_url",
            "TUBESTATUS_DATABASE_PATH": "database_path",
            "TUBESTATUS_HOST": "host",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "TUBESTATUS_POOL_SIZE": ("pool_size", int),
            "TUBESTATUS_POOL_TIMEOUT": ("pool_timeout", float),
            "TUBESTATUS_POLL_INTERVAL": ("poll_interval", float),
            "TUBESTATUS_MAX_QUERY_DAYS": ("max_query_days", int),
            "TUBESTATUS_PORT": ("port", int),
        }
        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        modes_env = env.get("TUBESTATUS_MODES")
        if modes_env is not None:
            config_kwargs["modes"] = _env_list(modes_env)

        # Ignore-sets are comma separated key names
        line_keys_env = env.get("TUBESTATUS_LINE_IGNORED_KEYS")
        if line_keys_env is not None:
            config_kwargs["line_ignored_keys"] = frozenset(_env_list(line_keys_env))
        station_keys_env = env.get("TUBESTATUS_STATION_IGNORED_KEYS")
        if station_keys_env is not None:
            config_kwargs["station_ignored_keys"] = frozenset(_env_list(station_keys_env))

        if "poll_stations" not in overrides:
            config_kwargs["poll_stations"] = _env_bool(env.get("TUBESTATUS_POLL_STATIONS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
