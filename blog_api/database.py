import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from blog_api.config import settings
from blog_api.middleware import install_query_counter

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the async engine and session factory.

    Nothing is opened at import time: ``connect`` is called from the
    application lifespan (or from a test fixture with its own URL) and
    ``disconnect`` disposes the pool on shutdown.
    """

    def __init__(self) -> None:
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, url: str | None = None, **engine_kwargs) -> None:
        url = url or settings.DATABASE_URL
        engine_kwargs.setdefault("echo", settings.DEBUG)
        if not url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_pre_ping", True)

        self.engine = create_async_engine(url, **engine_kwargs)
        # Register the per-request SQL query counter on every engine we create.
        install_query_counter(self.engine)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine created for %s", self.engine.url.render_as_string())

    async def disconnect(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.session_factory = None

    async def create_tables(self) -> None:
        """Create any missing tables (schema migrations are out of scope)."""
        # Models must be imported so their tables are registered on Base.metadata.
        import blog_api.models  # noqa: F401

        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        import blog_api.models  # noqa: F401

        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self.session_factory()

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("Database is not connected; call connect() first")
        return self.engine


database = Database()


async def get_db():
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
