"""
Database configuration with connection pooling and session helpers.

Provides the engine, session factory, declarative base and the guard that
turns data-store exceptions into StoreFailureError for mutating operations.
"""

import time
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from memoir.config import settings
from memoir.errors import StoreFailureError
from memoir.monitoring import capture_exception

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """Create an engine; pool and timeout tuning only applies to PostgreSQL."""
    if not database_url.startswith("postgresql"):
        return create_engine(database_url, echo=False)

    pg_engine = create_engine(
        database_url,
        pool_size=15,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=False,
        connect_args={"connect_timeout": 10},
    )

    @event.listens_for(pg_engine, "connect")
    def set_connection_timeout(dbapi_conn, connection_record):
        """Set connection-level timeouts."""
        with dbapi_conn.cursor() as cursor:
            cursor.execute("SET statement_timeout = '30s'")
            cursor.execute("SET idle_in_transaction_session_timeout = '60s'")

    return pg_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Context manager for database sessions.
    Useful for operations that need explicit transaction control.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def store_operation(db: Session, operation: str) -> Iterator[Session]:
    """
    Run a mutating operation against the store.

    SQLAlchemy errors are rolled back, reported and re-raised as
    StoreFailureError. Domain errors pass through untouched.
    """
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store failure during {operation}: {e}", exc_info=True)
        capture_exception(e, context={"operation": operation})
        raise StoreFailureError(operation) from e


def check_database_health() -> Dict[str, Any]:
    """
    Check database health and connectivity.

    Returns:
        Dictionary with health status and metrics
    """
    try:
        start_time = time.time()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        response_time = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "dialect": engine.dialect.name,
            "response_time_ms": round(response_time, 2),
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return {
            "status": "unhealthy",
            "error": str(e),
        }
