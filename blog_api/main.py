import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.database import database, get_db
from blog_api.errors import install_exception_handlers
from blog_api.middleware import TimingMiddleware
from blog_api.routers import categories, posts
from blog_api.services.category_service import ensure_uncategorized

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    database.connect()
    await database.create_tables()
    async with database.session() as session:
        await ensure_uncategorized(session)
        await session.commit()
    await cache.connect()  # App works without Redis
    logger.info("Blog API %s started (env=%s)", VERSION, settings.APP_ENV)
    yield
    # Shutdown
    await cache.disconnect()
    await database.disconnect()
    logger.info("Blog API stopped")


app = FastAPI(
    title="Blog API",
    description="Posts and categories for the blog frontend",
    version=VERSION,
    lifespan=lifespan,
)

install_exception_handlers(app)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(categories.router)
app.include_router(posts.router)


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "version": VERSION},
        )
    return {
        "status": "healthy",
        "database": "connected",
        "cache": cache.stats,
        "version": VERSION,
    }


def run() -> None:
    """Console entry point; uvicorn turns SIGINT/SIGTERM into a lifespan shutdown."""
    uvicorn.run(
        "blog_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
