"""
Database engine construction for the history file.

SQLite Notes:
-------------
Each RecordStore owns one engine built here; there is no process-wide handle.

1. WAL Mode (Write-Ahead Logging):
   - Readers see the last committed state while a write is in progress
   - A row is only visible once its transaction commits

2. NullPool:
   - Creates new connection for each operation (required for async SQLite)

3. Transactional DDL:
   - pysqlite only opens transactions for DML by default, so DROP/CREATE
     would autocommit one by one
   - The driver's implicit BEGIN is disabled and SQLAlchemy emits BEGIN itself,
     which makes flush() (drop + recreate) a single transaction

4. Busy Timeout (5 seconds):
   - Prevents "database is locked" errors when a reader holds the file

Limitations:
- Single-writer: writes are serialized by RecordStore's lock
- One agent process per file; concurrent processes are not coordinated
"""
from pathlib import Path
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from monika_history.constants import SQLITE_BUSY_TIMEOUT_MS

# Base class for models
Base = declarative_base()


def sqlite_url(path: Path) -> str:
    """Build an aiosqlite URL for an absolute file path."""
    return f"sqlite+aiosqlite:///{path}"


def create_history_engine(path: Path, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for a history file.

    Args:
        path: Absolute path of the SQLite file (created on first connect)
        echo: Log emitted SQL

    Returns:
        AsyncEngine with SQLite pragmas and transactional DDL enabled
    """
    engine = create_async_engine(
        sqlite_url(path),
        echo=echo,
        poolclass=NullPool,
        future=True
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """
        Configure each new connection.
        - isolation_level=None: stop the driver from emitting BEGIN (see do_begin)
        - PRAGMA journal_mode=WAL: committed-only visibility for readers
        - PRAGMA busy_timeout=5000: wait up to 5s for locks to release
        - PRAGMA synchronous=FULL: a commit is durable once it returns
        """
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to a history engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
