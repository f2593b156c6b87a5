"""
Category service: CRUD for categories plus the "Uncategorized" sentinel.

Deleting a category never orphans or cascades posts: they are moved to
the sentinel first, inside the request's single transaction, so no reader
ever sees a post pointing at a missing category.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.errors import BadRequestError
from blog_api.models import Category, Post
from blog_api.schemas import CategoryCreate, CategoryUpdate

logger = logging.getLogger(__name__)


def category_to_dict(category: Category | None) -> dict | None:
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "backgroundColor": category.background_color,
        "fontColor": category.font_color,
        "createdAt": category.created_at.isoformat() if category.created_at else None,
        "updatedAt": category.updated_at.isoformat() if category.updated_at else None,
    }


async def _find_by_name(db: AsyncSession, name: str) -> Category | None:
    result = await db.execute(select(Category).where(Category.name == name))
    return result.scalar_one_or_none()


async def _ensure_name_free(
    db: AsyncSession, name: str, exclude_id: int | None = None
) -> None:
    existing = await _find_by_name(db, name)
    if existing is not None and existing.id != exclude_id:
        raise BadRequestError("Category name already exists", f"name={name!r}")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def ensure_uncategorized(db: AsyncSession) -> Category:
    """
    Return the sentinel category, creating it with default colours if it
    is missing.

    Idempotent.  The insert runs in a savepoint: if a concurrent request
    created the row first, the unique name rejects ours and the winner's
    row is read back instead.
    """
    name = settings.UNCATEGORIZED_NAME
    category = await _find_by_name(db, name)
    if category is not None:
        return category

    category = Category(
        name=name,
        background_color=settings.DEFAULT_BACKGROUND_COLOR,
        font_color=settings.DEFAULT_FONT_COLOR,
    )
    try:
        async with db.begin_nested():
            db.add(category)
    except IntegrityError:
        logger.info("Sentinel category %r created concurrently; reusing it", name)
        return await _find_by_name(db, name)

    logger.info("Created sentinel category %r (id=%s)", name, category.id)
    return category


async def get_category(db: AsyncSession, category_id: int) -> Category | None:
    return await db.get(Category, category_id)


async def get_categories(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Category).order_by(Category.id))
    return [category_to_dict(c) for c in result.scalars().all()]


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    await _ensure_name_free(db, data.name)
    category = Category(
        name=data.name,
        background_color=data.background_color or settings.DEFAULT_BACKGROUND_COLOR,
        font_color=data.font_color or settings.DEFAULT_FONT_COLOR,
    )
    db.add(category)
    await db.flush()
    logger.info("Created category %r (id=%s)", category.name, category.id)
    return category_to_dict(category)


async def update_category(
    db: AsyncSession, category_id: int, data: CategoryUpdate
) -> dict | None:
    """
    Apply the fields set on *data* to the category.

    Returns None when the category does not exist.  Explicit nulls for
    the colours are ignored rather than written.
    """
    category = await get_category(db, category_id)
    if category is None:
        return None

    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if "name" in changes and changes["name"] != category.name:
        await _ensure_name_free(db, changes["name"], exclude_id=category_id)

    for field, value in changes.items():
        setattr(category, field, value)

    await db.flush()
    await cache.invalidate_posts()
    logger.info("Updated category id=%s fields=%s", category_id, sorted(changes))
    return category_to_dict(category)


async def delete_category(db: AsyncSession, category_id: int) -> bool:
    """
    Move the category's posts to the sentinel, then delete it.

    Returns False when the category does not exist.  Both statements run
    in the caller's transaction.
    """
    category = await get_category(db, category_id)
    if category is None:
        return False
    if category.name == settings.UNCATEGORIZED_NAME:
        raise BadRequestError(
            f"The {settings.UNCATEGORIZED_NAME!r} category cannot be deleted"
        )

    fallback = await ensure_uncategorized(db)
    result = await db.execute(
        update(Post)
        .where(Post.category_id == category_id)
        .values(category_id=fallback.id)
    )
    await db.delete(category)
    await db.flush()

    await cache.invalidate_posts()
    logger.info(
        "Deleted category id=%s, moved %d post(s) to %r",
        category_id,
        result.rowcount,
        fallback.name,
    )
    return True
