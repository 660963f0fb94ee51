"""
Module: ownership_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine and session factory for the
    lot ledger, plus table creation for embedded and test databases.
Architecture position: Kernel > DB.  MUST NOT import from services/,
    selectors/, domain/, or outer layers (create_tables imports models).

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED; same-bucket writers are
      serialized by SELECT ... FOR UPDATE on the bucket load, and lost
      updates are caught by the lot version column.
    - In-memory SQLite uses a single shared connection so every session
      sees the same lots.

Failure modes:
    - RuntimeError from get_engine/get_session_factory before
      init_engine_from_url().
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ownership_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in _MEMORY_URLS:
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    pool_size and max_overflow only apply to server databases.  Sessions
    are created with expire_on_commit=False so lot records built from rows
    stay readable after UnitOfWork.begin commits.
    """
    global _engine, _session_factory

    reset_engine()
    _engine = create_engine(
        database_url, echo=echo, **_engine_options(database_url, pool_size, max_overflow)
    )
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": _engine.dialect.name,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
    })
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory for UnitOfWork.begin and run_with_retry."""
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def create_tables() -> None:
    """Create ownership_lots and ownership_movements if missing."""
    import ownership_kernel.models  # noqa: F401  (registers tables on Base.metadata)
    from ownership_kernel.db.base import Base

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every ledger table (tests and local resets only)."""
    import ownership_kernel.models  # noqa: F401
    from ownership_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the current engine, if any, and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
