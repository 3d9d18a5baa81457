"""Durable, transactional interval store.

This is the only component allowed to open or close history intervals.
Rows are append-only: a change closes the open interval and inserts a new
one inside the same transaction, and nothing is ever deleted.

The store wraps a SQLAlchemy Core engine over SQLite. Blocking calls run in
worker threads so the event loop stays free for the poller and the read API,
and the engine's ``QueuePool`` bounds how many run at once.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import (
    Column,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    Text,
    create_engine,
    event,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from tubestatus._constants import DEFAULT_POOL_SIZE, DEFAULT_POOL_TIMEOUT
from tubestatus.config import TubeStatusConfig
from tubestatus.exceptions import (
    TubeConnectionError,
    TubeQueryError,
    TubeStoreInitError,
    TubeTransactionError,
)
from tubestatus.state.events import EntityFamily, HistoryInterval, TransitionResult
from tubestatus.state.policy import Document, materially_changed

_logger = logging.getLogger(__name__)

_metadata = MetaData()


def _history_table(name: str) -> Table:
    return Table(
        name,
        _metadata,
        Column("entity_id", Text, nullable=False),
        Column("start_time", Integer, nullable=False),
        Column("end_time", Integer, nullable=True),
        Column("data", LargeBinary, nullable=False),
        Index(f"ix_{name}_entity_end", "entity_id", "end_time"),
    )


_TABLES: dict[EntityFamily, Table] = {family: _history_table(family.table_name) for family in EntityFamily}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def encode_document(document: Document) -> bytes:
    """Serialize a document to the compact JSON blob stored in ``data``."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")


def decode_document(blob: bytes) -> Document:
    result: Document = json.loads(blob)
    return result


def _from_unix(entity_id: str, label: str, value: int) -> datetime:
    try:
        return datetime.fromtimestamp(value, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise TubeQueryError(f"{entity_id}: Invalid {label}: {value}") from exc


def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
    # Leave transaction control to the explicit BEGIN emitted in _on_begin.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def _on_begin(conn: Connection) -> None:
    # Transitions begin IMMEDIATE and hold the write lock from the first read.
    mode = conn.get_execution_options().get("sqlite_begin")
    conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


class IntervalStore:
    """Per-entity history intervals for every :class:`EntityFamily`.

    Usage::

        async with IntervalStore("./store/store.db") as store:
            await store.transition(EntityFamily.LINES, {"victoria": {...}})
            history = await store.range_query(EntityFamily.LINES, start, end)
    """

    def __init__(
        self,
        database_path: str | Path,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        pool_timeout: float = DEFAULT_POOL_TIMEOUT,
        ignored_keys: Mapping[EntityFamily, frozenset[str]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._database_path = Path(database_path)
        self._pool_size = pool_size
        self._pool_timeout = pool_timeout
        self._ignored_keys: dict[EntityFamily, frozenset[str]] = dict(ignored_keys or {})
        self._clock = clock
        self._engine: Engine | None = None

    @classmethod
    def from_config(cls, config: TubeStatusConfig, **kwargs: Any) -> IntervalStore:
        return cls(
            config.database_path,
            pool_size=config.pool_size,
            pool_timeout=config.pool_timeout,
            ignored_keys={
                EntityFamily.LINES: config.line_ignored_keys,
                EntityFamily.STATIONS: config.station_ignored_keys,
            },
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> IntervalStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Open the pool and create missing tables.

        Raises :class:`TubeStoreInitError` when the database cannot be opened.
        """
        if self._engine is not None:
            return
        self._engine = await asyncio.to_thread(self._create_engine)
        _logger.info("History store ready at %s", self._database_path)

    def _create_engine(self) -> Engine:
        engine: Engine | None = None
        try:
            self._database_path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(
                f"sqlite:///{self._database_path}",
                poolclass=QueuePool,
                pool_size=self._pool_size,
                max_overflow=0,
                pool_timeout=self._pool_timeout,
                connect_args={"check_same_thread": False},
            )
            event.listen(engine, "connect", _on_connect)
            event.listen(engine, "begin", _on_begin)
            _metadata.create_all(engine)
        except (OSError, SQLAlchemyError) as exc:
            if engine is not None:
                engine.dispose()
            raise TubeStoreInitError(f"Cannot open history store at {self._database_path}: {exc}") from exc
        return engine

    async def close(self) -> None:
        """Release every pooled connection."""
        engine, self._engine = self._engine, None
        if engine is not None:
            await asyncio.to_thread(engine.dispose)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def ignored_keys(self, family: EntityFamily) -> frozenset[str]:
        return self._ignored_keys.get(family, frozenset())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        if self._engine is None:
            raise TubeConnectionError("Store not initialized. Use 'async with IntervalStore(...) as store:'")
        try:
            conn = self._engine.connect()
        except SQLAlchemyError as exc:
            raise TubeConnectionError(f"Could not acquire a store connection: {exc}") from exc
        try:
            yield conn
        finally:
            conn.close()

    def _now(self) -> int:
        return int(self._clock().timestamp())

    @staticmethod
    def _close_open(conn: Connection, table: Table, entity_id: str, now: int) -> None:
        conn.execute(
            update(table).where(table.c.entity_id == entity_id, table.c.end_time.is_(None)).values(end_time=now)
        )

    @staticmethod
    def _should_replace(
        family: EntityFamily,
        entity_id: str,
        stored: bytes,
        document: Document,
        ignored: frozenset[str],
    ) -> bool:
        try:
            previous = decode_document(stored)
        except ValueError:
            _logger.warning("Open %s interval for %s holds undecodable data; replacing it", family, entity_id)
            return True
        return materially_changed(previous, document, ignored)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def transition(self, family: EntityFamily, snapshot: Mapping[str, Document]) -> TransitionResult:
        """Record *snapshot* as the family's current state, atomically.

        - Unchanged entities keep their open interval.
        - Changed entities get their open interval closed and a new one
          opened at the same timestamp.
        - New entities get a new open interval.
        - For families that close on absence, open entities missing from
          *snapshot* are closed without a replacement.

        The whole call is one transaction; on failure nothing is written
        and :class:`TubeTransactionError` is raised.
        """
        return await asyncio.to_thread(self._transition_sync, family, dict(snapshot))

    def _transition_sync(self, family: EntityFamily, snapshot: dict[str, Document]) -> TransitionResult:
        table = _TABLES[family]
        ignored = self.ignored_keys(family)
        now = 0
        opened: list[str] = []
        closed: list[str] = []
        unchanged: list[str] = []

        with self._connection() as conn:
            conn = conn.execution_options(sqlite_begin="IMMEDIATE")
            try:
                with conn.begin():
                    # Clock is read under the write lock: timestamps follow commit order.
                    now = self._now()
                    rows = conn.execute(
                        select(table.c.entity_id, table.c.data).where(table.c.end_time.is_(None))
                    ).all()
                    existing: dict[str, bytes] = {row.entity_id: row.data for row in rows}

                    for entity_id, document in snapshot.items():
                        stored = existing.get(entity_id)
                        if stored is not None:
                            if not self._should_replace(family, entity_id, stored, document, ignored):
                                unchanged.append(entity_id)
                                continue
                            _logger.info("Open %s interval for %s no longer matches; replacing", family, entity_id)
                            self._close_open(conn, table, entity_id, now)
                            closed.append(entity_id)
                        else:
                            _logger.info("No open %s interval for %s; opening one", family, entity_id)
                        conn.execute(
                            insert(table).values(
                                entity_id=entity_id,
                                start_time=now,
                                end_time=None,
                                data=encode_document(document),
                            )
                        )
                        opened.append(entity_id)

                    if family.closes_on_absence:
                        for entity_id in sorted(existing.keys() - snapshot.keys()):
                            _logger.info("%s %s no longer reported; closing its interval", family, entity_id)
                            self._close_open(conn, table, entity_id, now)
                            closed.append(entity_id)
            except (SQLAlchemyError, TypeError, ValueError) as exc:
                raise TubeTransactionError(f"{family} transition rolled back: {exc}") from exc

        return TransitionResult(
            family=family,
            timestamp=now,
            opened=tuple(opened),
            closed=tuple(closed),
            unchanged=tuple(unchanged),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def range_query(
        self,
        family: EntityFamily,
        start_time: datetime,
        end_time: datetime,
    ) -> dict[str, list[HistoryInterval]]:
        """Return intervals overlapping ``[start_time, end_time]``, grouped by entity.

        An interval matches when it is still open or ended at/after
        ``start_time``, and started at/before ``end_time``. Intervals are
        chronological within each entity.
        """
        return await asyncio.to_thread(
            self._range_query_sync,
            family,
            # Stored times are whole seconds: round the start up and the end down.
            math.ceil(start_time.timestamp()),
            math.floor(end_time.timestamp()),
        )

    def _range_query_sync(self, family: EntityFamily, start_ts: int, end_ts: int) -> dict[str, list[HistoryInterval]]:
        table = _TABLES[family]
        stmt = (
            select(table.c.entity_id, table.c.start_time, table.c.end_time, table.c.data)
            .where(
                table.c.start_time <= end_ts,
                or_(table.c.end_time.is_(None), table.c.end_time >= start_ts),
            )
            .order_by(table.c.entity_id, table.c.start_time, table.c.end_time.is_(None), table.c.end_time)
        )

        with self._connection() as conn:
            try:
                rows = conn.execute(stmt).all()
            except SQLAlchemyError as exc:
                raise TubeQueryError(f"{family} history query failed: {exc}") from exc

        grouped: dict[str, list[HistoryInterval]] = {}
        for row in rows:
            try:
                data = decode_document(row.data)
            except ValueError as exc:
                raise TubeQueryError(f"{row.entity_id}: Invalid data at {row.start_time}") from exc
            interval = HistoryInterval(
                entity_id=row.entity_id,
                start_time=_from_unix(row.entity_id, "start time", row.start_time),
                end_time=None if row.end_time is None else _from_unix(row.entity_id, "end time", row.end_time),
                data=data,
            )
            grouped.setdefault(row.entity_id, []).append(interval)
        return grouped
