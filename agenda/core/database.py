# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Database engine: one shared connection pool for the process.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from agenda.core.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine for ``url``.

    SQLite (local runs and the test-suite) shares one connection through a
    StaticPool so an in-memory database survives across requests; every
    other backend gets the regular pool with pre-ping.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


engine = build_engine(settings.DATABASE_URL)
