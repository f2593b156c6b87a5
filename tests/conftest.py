"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite removes the need for a running Postgres
  instance; StaticPool makes every session share the one connection the
  in-memory database lives on.
- A dedicated ``Database`` instance is connected to that URL, and the
  app's ``get_db`` dependency is overridden to use it.
- Tables are created before each test and dropped after, so every test
  starts from an empty store.
- Cloudinary is replaced by ``FakeImageStorage`` through the
  ``get_media_service`` dependency; it records uploads and can be told
  to fail.
- Redis is never connected, so the CacheManager treats every read as a
  miss and every write as a no-op.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from blog_api.cache import cache
from blog_api.database import Database, get_db
from blog_api.main import app
from blog_api.services.media_service import MediaService, get_media_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_database = Database()
test_database.connect(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


class FakeImageStorage:
    """In-memory stand-in for the image host."""

    def __init__(self) -> None:
        self.uploads: list[dict] = []
        self.fail_with: Exception | None = None

    async def upload_image(self, file_data: bytes, folder: str, content_type: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.uploads.append(
            {"folder": folder, "size": len(file_data), "content_type": content_type}
        )
        return f"https://images.example.com/{folder}/{len(self.uploads)}.img"


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with test_database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    await test_database.create_tables()
    yield
    await test_database.drop_tables()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for tests that drive services directly."""
    async with test_database.session() as session:
        yield session


@pytest.fixture
def image_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def media(image_storage: FakeImageStorage) -> MediaService:
    return MediaService(storage=image_storage)


@pytest_asyncio.fixture
async def async_client(media: MediaService) -> AsyncClient:
    """httpx client wired to the app, with the fake image host installed."""
    cache._redis = None
    app.dependency_overrides[get_media_service] = lambda: media
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_media_service, None)
