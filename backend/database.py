"""Database engine and session factory for the task history store."""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from config import settings
from errors import ConfigurationError

SUPPORTED_SCHEME = "postgresql+asyncpg"


def resolve_database_url(url: str) -> str:
    """Return ``url`` with the asyncpg driver, rejecting other backends.

    Raises:
        ConfigurationError: If the URL is not a PostgreSQL URL.
    """
    scheme, sep, rest = url.partition("://")
    if not sep:
        raise ConfigurationError(f"Malformed database URL: {url!r}", setting="database_url")
    if scheme == "postgresql":
        scheme = SUPPORTED_SCHEME
    if scheme != SUPPORTED_SCHEME:
        raise ConfigurationError(
            f"Unsupported database scheme {scheme!r}, expected postgresql",
            setting="database_url",
        )
    return f"{scheme}://{rest}"


# Create async engine
engine = create_async_engine(
    resolve_database_url(settings.database_url),
    echo=settings.log_level == "DEBUG",
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def import_models():
    """Import all models to register them with Base.metadata.

    This must be called before create_all() to ensure all tables are created.
    """
    from models import task_history  # noqa: F401


async def init_db():
    """Initialize database tables."""
    import_models()  # Ensure models are registered before creating tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
