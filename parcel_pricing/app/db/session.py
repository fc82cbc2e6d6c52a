"""
Database engine and sessions for pricing rule storage.

PostgreSQL (asyncpg) in deployment; any SQLAlchemy async URL works, which
is how the tests run against SQLite.
"""

from typing import Any, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from parcel_pricing.app.core.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Pool sizing only applies to server databases; SQLite rejects it."""
    options: Dict[str, Any] = {"echo": settings.db_echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Rule snapshots are read after commit, so attributes must stay loaded
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def create_tables() -> None:
    """Create the pricing_rules and audit_logs tables when missing."""
    # Registers the mapped classes on Base.metadata
    from parcel_pricing.app.models import audit_log, pricing_rule  # noqa: F401
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency yielding one session per request.
    
    Uncommitted work is rolled back when the handler raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
