"""
SQLite-backed history store for probe requests and notification deliveries.
"""
import asyncio
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional, Type

from loguru import logger
from sqlalchemy import select, update, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, async_sessionmaker

from monika_history.database import Base, create_history_engine, create_session_factory
from monika_history.exceptions import StoreError, StoreOpenError, StoreWriteError, StoreClosedError
from monika_history.models import RequestLog, NotificationLog
from monika_history.schemas import (
    LogKind,
    ProbeResult,
    NotificationDeliveryResult,
    RequestLogEntry,
    NotificationLogEntry,
    UnreportedBatch,
)

# Stay well below SQLite's bound-parameter limit when marking large backlogs
MARK_CHUNK_SIZE = 500

_MODELS = {
    LogKind.REQUEST: RequestLog,
    LogKind.NOTIFICATION: NotificationLog,
}


def _chunks(ids: List[int], size: int = MARK_CHUNK_SIZE) -> Iterable[List[int]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class RecordStore:
    """
    History file with one table per log kind.

    Rows are append-only apart from the one-way ``reported`` flag. All
    mutating calls go through a single lock; reads run unlocked inside their
    own SQLite transaction and only ever see committed rows.

    Usage:
        async with open_store("monika-logs.db") as store:
            await store.insert_request_log(result)
    """

    def __init__(self, path: str | Path, echo: bool = False):
        self.path = Path(path).expanduser().resolve()
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._write_lock = asyncio.Lock()
        self._last_created_at: Optional[datetime] = None
        # Bumped by every flush; ids handed out before a flush are reused after it
        self._generation = 0

    async def __aenter__(self) -> "RecordStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def generation(self) -> int:
        """Number of flushes since the store was created."""
        return self._generation

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self):
        """
        Open the history file, creating it and any missing table.

        Existing tables are never altered or dropped.

        Raises:
            StoreOpenError: If the file cannot be created or written, is not a
                SQLite database, or holds tables with an incompatible layout
        """
        if self._engine is not None:
            return

        engine = create_history_engine(self.path, echo=self.echo)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                await self._check_schema(conn)
        except StoreOpenError:
            await engine.dispose()
            raise
        except (SQLAlchemyError, sqlite3.Error, OSError) as e:
            await engine.dispose()
            raise StoreOpenError(f"Cannot open history database {self.path}: {e}") from e

        self._engine = engine
        self._session_factory = create_session_factory(engine)
        logger.info(f"History database opened at {self.path}")

    async def _check_schema(self, conn: AsyncConnection):
        """Verify that every mapped column exists in the tables on disk."""
        for table in Base.metadata.sorted_tables:
            result = await conn.execute(text(f"PRAGMA table_info({table.name})"))
            existing_columns = {row[1] for row in result.fetchall()}
            missing = [column.name for column in table.columns if column.name not in existing_columns]
            if missing:
                raise StoreOpenError(
                    f"History database {self.path} has an incompatible {table.name} table "
                    f"(missing columns: {', '.join(missing)})"
                )

    async def close(self):
        """Release the database file. Waits for an in-flight write to finish."""
        async with self._write_lock:
            if self._engine is None:
                return
            engine = self._engine
            self._engine = None
            self._session_factory = None
            await engine.dispose()
        logger.debug(f"History database closed at {self.path}")

    def _require_open(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise StoreClosedError(f"History database {self.path} is not open")
        return self._session_factory

    def _next_created_at(self) -> datetime:
        """Current UTC time, never earlier than the previous insert (naive for SQLite)."""
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        if self._last_created_at is not None and now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_request_log(self, result: ProbeResult) -> int:
        """
        Append one probe request row.

        Returns:
            The id assigned to the new row

        Raises:
            StoreWriteError: If the insert did not commit (nothing is written)
            StoreClosedError: If the store is not open
        """
        async with self._write_lock:
            session_factory = self._require_open()
            row = RequestLog(
                created_at=self._next_created_at(),
                probe_id=result.probe_id,
                probe_name=result.probe_name,
                probe_url=result.probe_url,
                status_code=result.status_code,
                response_time_ms=result.response_time_ms,
                error_message=result.error_message,
                reported=False,
            )
            await self._insert(session_factory, row, LogKind.REQUEST)
            return row.id

    async def insert_notification_log(self, result: NotificationDeliveryResult) -> int:
        """
        Append one notification delivery row.

        Returns:
            The id assigned to the new row

        Raises:
            StoreWriteError: If the insert did not commit (nothing is written)
            StoreClosedError: If the store is not open
        """
        async with self._write_lock:
            session_factory = self._require_open()
            row = NotificationLog(
                created_at=self._next_created_at(),
                probe_id=result.probe_id,
                alert_id=result.alert_id,
                notification_channel_id=result.notification_channel_id,
                channel_type=result.channel_type,
                status=result.status.value,
                message=result.message,
                reported=False,
            )
            await self._insert(session_factory, row, LogKind.NOTIFICATION)
            return row.id

    async def _insert(self, session_factory: async_sessionmaker[AsyncSession], row, kind: LogKind):
        try:
            async with session_factory() as session:
                async with session.begin():
                    session.add(row)
        except (SQLAlchemyError, sqlite3.Error) as e:
            raise StoreWriteError(f"Cannot insert {kind.value} log into {self.path.name}: {e}") from e
        logger.debug(f"Inserted {kind.value} log {row.id}")

    async def mark_reported(self, kind: LogKind, ids: Iterable[int], generation: Optional[int] = None):
        """
        Set ``reported`` for exactly the given rows of one table.

        Rows that are already reported stay reported. The whole call is one
        transaction: if any id is unknown nothing is marked.

        Args:
            kind: Which table the ids belong to
            ids: Non-empty collection of row ids
            generation: Store generation the ids were read in (see
                ``UnreportedBatch.generation``). When a flush happened since,
                the ids may now name different rows and nothing is marked.

        Raises:
            ValueError: If ids is empty
            StoreWriteError: If an id does not exist, the store was flushed
                after the ids were read, or the update did not commit
            StoreClosedError: If the store is not open
        """
        id_list = sorted(set(ids))
        if not id_list:
            raise ValueError("mark_reported needs at least one id")

        model = _MODELS[kind]
        async with self._write_lock:
            session_factory = self._require_open()
            if generation is not None and generation != self._generation:
                raise StoreWriteError(
                    f"Cannot mark {kind.value} logs as reported, history was flushed after they were read"
                )
            try:
                async with session_factory() as session:
                    async with session.begin():
                        found = set()
                        for chunk in _chunks(id_list):
                            result = await session.execute(select(model.id).where(model.id.in_(chunk)))
                            found.update(result.scalars().all())

                        missing = [log_id for log_id in id_list if log_id not in found]
                        if missing:
                            raise StoreWriteError(
                                f"Cannot mark {kind.value} logs as reported, unknown id(s): {missing}"
                            )

                        for chunk in _chunks(id_list):
                            await session.execute(
                                update(model)
                                .where(model.id.in_(chunk), model.reported.is_(False))
                                .values(reported=True)
                                .execution_options(synchronize_session=False)
                            )
            except (SQLAlchemyError, sqlite3.Error) as e:
                raise StoreWriteError(f"Cannot mark {kind.value} logs as reported: {e}") from e

        logger.debug(f"Marked {len(id_list)} {kind.value} log(s) as reported")

    async def flush(self):
        """
        Drop and recreate both tables in one transaction.

        Id sequences restart at 1. On failure the previous contents remain.

        Raises:
            StoreWriteError: If the transaction did not commit
            StoreClosedError: If the store is not open
        """
        async with self._write_lock:
            self._require_open()
            try:
                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.drop_all)
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, sqlite3.Error) as e:
                raise StoreWriteError(f"Cannot flush history database {self.path.name}: {e}") from e
            self._generation += 1

        logger.info("All history logs flushed")

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_all_request_logs(self) -> List[RequestLogEntry]:
        """Every request row, reported or not, in insertion order."""
        return await self._list_all(RequestLog, RequestLogEntry)

    async def list_all_notification_logs(self) -> List[NotificationLogEntry]:
        """Every notification row, reported or not, in insertion order."""
        return await self._list_all(NotificationLog, NotificationLogEntry)

    async def _list_all(self, model, entry_type: Type):
        session_factory = self._require_open()
        try:
            async with session_factory() as session:
                result = await session.execute(select(model).order_by(model.id))
                return [entry_type.model_validate(row) for row in result.scalars().all()]
        except (SQLAlchemyError, sqlite3.Error) as e:
            raise StoreError(f"Cannot read {model.__tablename__}: {e}") from e

    async def list_unreported(self) -> UnreportedBatch:
        """
        Snapshot of every row with ``reported = false`` in both tables.

        Both tables are read inside one transaction, so rows committed while
        the snapshot is taken are left for the next call. The batch carries
        the store generation to pass back to ``mark_reported``.
        """
        session_factory = self._require_open()
        # Taken before the read: a flush racing the read only makes the mark stale
        generation = self._generation
        try:
            async with session_factory() as session:
                requests = await session.execute(
                    select(RequestLog).where(RequestLog.reported.is_(False)).order_by(RequestLog.id)
                )
                notifications = await session.execute(
                    select(NotificationLog).where(NotificationLog.reported.is_(False)).order_by(NotificationLog.id)
                )
                return UnreportedBatch(
                    requests=[RequestLogEntry.model_validate(row) for row in requests.scalars().all()],
                    notifications=[NotificationLogEntry.model_validate(row) for row in notifications.scalars().all()],
                    generation=generation,
                )
        except (SQLAlchemyError, sqlite3.Error) as e:
            raise StoreError(f"Cannot read unreported logs: {e}") from e


@asynccontextmanager
async def open_store(path: str | Path, echo: bool = False) -> AsyncIterator[RecordStore]:
    """Open a RecordStore for the duration of a block."""
    store = RecordStore(path, echo=echo)
    await store.open()
    try:
        yield store
    finally:
        await store.close()
