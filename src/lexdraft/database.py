from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from typing import Optional

from .config import settings
from .models import Base


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine; in-memory SQLite shares one connection."""
    url = url or settings.DATABASE_URL
    echo = settings.DATABASE_ECHO if echo is None else echo

    if url.startswith("sqlite"):
        in_memory = url.endswith("://") or ":memory:" in url
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool if in_memory else None,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=echo,
        poolclass=NullPool,
        connect_args={"server_settings": {"application_name": "lexdraft"}},
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine from settings
engine = create_engine()

# Create async session factory
async_session = create_session_factory(engine)

async def init_db(bind: Optional[AsyncEngine] = None):
    """Initialize database tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
