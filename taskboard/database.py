import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from taskboard.config import settings
from taskboard.errors import TransactionError

logger = logging.getLogger(__name__)

# Ensure we use the async driver
SQLALCHEMY_DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")

engine_options = {"echo": settings.DB_ECHO}
if SQLALCHEMY_DATABASE_URL.startswith("postgresql"):
    engine_options.update(
        pool_size=settings.DB_POOL_SIZE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )

engine = create_async_engine(SQLALCHEMY_DATABASE_URL, **engine_options)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency handing the session factory to the services."""
    return AsyncSessionLocal


@asynccontextmanager
async def transaction(sessions: async_sessionmaker[AsyncSession]):
    """
    Run a block on a dedicated pooled connection inside one transaction.

    Commits when the block exits cleanly. Any exception rolls the whole
    transaction back; database failures are re-raised as TransactionError,
    everything else propagates unchanged. The connection goes back to the
    pool on every exit path.
    """
    try:
        async with sessions.begin() as db:
            yield db
    except SQLAlchemyError as e:
        logger.error("Transaction rolled back: %s", e)
        raise TransactionError("Database transaction failed") from e


async def init_models(bind=None) -> None:
    """Create any missing tables on ``bind`` (the app engine by default)."""
    # importing the model modules registers their tables on Base.metadata
    from taskboard.models import activity, email, tasks, user, workspace  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
