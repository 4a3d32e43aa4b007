import json
from logging import getLogger
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import MetaData, inspect
from config import ASYNC_DATABASE_URL
from contextlib import asynccontextmanager

logger = getLogger("webapp.database")

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def make_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=10,          # realistic default for async apps
        max_overflow=20,       # allow up to 30 concurrent (10 + 20 overflow)
        pool_timeout=60,       # seconds to wait before raising TimeoutError
        pool_recycle=1800,     # recycle every 30 mins to avoid stale sockets
        pool_pre_ping=True,    # ensures dropped connections are refreshed
    )


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False, class_=AsyncSession)


engine = make_engine(ASYNC_DATABASE_URL)
AsyncSessionLocal = make_sessionmaker(engine)

# tenant DSN -> session factory; tenants come from the bearer token's db_info claim
_tenant_factories: dict[str, async_sessionmaker[AsyncSession]] = {}


def session_factory_for(dsn: str | None) -> async_sessionmaker[AsyncSession]:
    """Session factory for a tenant DSN, or the default database when dsn is empty."""
    if not dsn or dsn == ASYNC_DATABASE_URL:
        return AsyncSessionLocal
    factory = _tenant_factories.get(dsn)
    if factory is None:
        logger.info("Creating engine for tenant database")
        factory = make_sessionmaker(make_engine(dsn))
        _tenant_factories[dsn] = factory
    return factory


async def dispose_engines() -> None:
    for factory in _tenant_factories.values():
        await factory.kw["bind"].dispose()
    _tenant_factories.clear()
    await engine.dispose()


@asynccontextmanager
async def get_session(factory: async_sessionmaker[AsyncSession] | None = None):
    async with (factory or AsyncSessionLocal)() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


class BaseModelMixin:
    """Adds universal to_dict() and to_json() methods to SQLAlchemy models."""

    def to_dict(self) -> dict:
        """Convert the SQLAlchemy object to a clean dictionary."""
        return {
            c.key: getattr(self, c.key)
            for c in inspect(self).mapper.column_attrs
        }

    def to_json(self) -> str:
        """Convert the SQLAlchemy object to a JSON string."""
        return json.dumps(self.to_dict(), default=str)


Base = declarative_base(cls=BaseModelMixin, metadata=MetaData(naming_convention=NAMING_CONVENTION))


async def init_db(recreate: bool, bind: AsyncEngine | None = None):
    async with (bind or engine).begin() as conn:
        if recreate:
            logger.warning("Recreating entire database schema...")
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
            logger.info("All tables dropped and recreated successfully.")
        else:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("All tables checked/created successfully.")

    logger.info("DB initialization complete.")
