"""
Database Connection Management

Synchronous SQLAlchemy 2.0 engine and session lifecycle for the reporting
repositories. Repository calls are blocking; timeouts and retries belong to
the driver/pool configuration here, not to the analytics core.
"""

import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vendor_analytics.config import get_settings
from vendor_analytics.database.models import Base

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def init_database(url: Optional[str] = None) -> Engine:
    """
    Initialize the database engine and session factory.

    Args:
        url: Database URL, defaults to the configured one

    Returns:
        Engine: The initialized database engine
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    url = url or settings.database.get_url()

    engine_config = {
        "echo": settings.database.echo,
        "pool_pre_ping": True,  # Verify connections before use
    }
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        engine_config.update({
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        })
    else:
        engine_config.update({
            "pool_size": settings.database.pool_size,
            "max_overflow": settings.database.max_overflow,
            "pool_timeout": settings.database.pool_timeout,
        })

    _engine = create_engine(url, **engine_config)
    _session_factory = sessionmaker(
        bind=_engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )

    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection established", dialect=_engine.dialect.name)
    except Exception as e:
        logger.error("Failed to connect to database", error_type=type(e).__name__)
        _engine.dispose()
        _engine = None
        _session_factory = None
        raise

    return _engine


def close_database() -> None:
    """Dispose the engine and its connection pool."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> Engine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


def create_schema(engine: Optional[Engine] = None) -> None:
    """Create all reporting tables (development and tests)."""
    Base.metadata.create_all(engine or get_engine())


@contextmanager
def get_db() -> Iterator[Session]:
    """
    Get a database session.

    Context manager that provides a session and handles
    commit/rollback/close automatically.

    Example:
        with get_db() as db:
            result = db.execute(query)
    """
    if _session_factory is None:
        logger.error("Database not initialized when get_db() called")
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error_type=type(e).__name__)
        session.rollback()
        raise
    finally:
        session.close()


def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        with get_db() as db:
            db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": type(e).__name__,
        }
