"""
Module: mill_kernel.db.engine
Responsibility: Process-wide engine and session factory for the event store,
    plus a commit-or-rollback session scope for write paths such as batch
    clearing.
Architecture position: Kernel > DB. Imports the models package only when
    creating or dropping tables.

Invariants enforced:
    - PostgreSQL connections come from a pre-pinged QueuePool at READ
      COMMITTED.
    - In-memory SQLite shares one connection (StaticPool) so every session
      sees the same database; file SQLite allows cross-thread use so reader
      threads can each open their own session.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from mill_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Event store not initialized; call init_engine_from_url() first."


def _sqlite_engine(url: URL, echo: bool) -> Engine:
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=echo, **kwargs)


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Pool arguments apply to PostgreSQL only. Calling again replaces the
    previous engine without disposing it; use reset_engine() first.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        _engine = _sqlite_engine(url, echo)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "event_store_engine_initialized",
        extra={
            "dialect": dialect,
            "database": url.database if dialect == "sqlite" else url.host,
            "pool_size": None if dialect == "sqlite" else pool_size,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Shared factory; each thread opens its own session from it."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One transaction: commit on normal exit, roll back and re-raise on error.

    Services only flush; this is where their work is committed::

        with session_scope() as session:
            OutturnService(session, clock).clear_outturn(batch_id, day, actor_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("event_store_committed")
    except Exception:
        session.rollback()
        logger.warning("event_store_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from mill_kernel.db.base import Base
    import mill_kernel.models  # noqa: F401  registers the tables

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every event store table. Tests and local tooling only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_at_exit() -> None:
    if _engine is not None:
        _engine.dispose()
