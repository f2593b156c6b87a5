"""
Slug service: turns post titles into unique, URL-safe identifiers.

``slugify`` is pure; ``generate_unique_slug`` checks the ``posts`` table
on every attempt and appends ``-1``, ``-2``, ... until a free slug is
found.  Two concurrent generations for the *same* base title can still
race; the unique constraint on ``posts.custom_url`` turns that into a
failed request rather than a duplicate.
"""
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.errors import SlugGenerationError
from blog_api.models import Post

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Leaves room for a "-<n>" suffix inside the 100-character column.
BASE_MAX_LENGTH = 90
FALLBACK_BASE = "post"


def slugify(title: str) -> str:
    """Return a lowercase, hyphen-separated slug derived from *title*."""
    slug = _NON_ALNUM_RE.sub("-", title.lower().strip()).strip("-")
    slug = slug[:BASE_MAX_LENGTH].rstrip("-")
    return slug or FALLBACK_BASE


async def is_slug_taken(
    db: AsyncSession, slug: str, exclude_id: int | None = None
) -> bool:
    """True when a post other than *exclude_id* already uses *slug*."""
    q = select(Post.id).where(Post.custom_url == slug)
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    result = await db.execute(q.limit(1))
    return result.scalar_one_or_none() is not None


async def generate_unique_slug(
    db: AsyncSession, title: str, exclude_id: int | None = None
) -> str:
    base = slugify(title)
    candidate = base
    for attempt in range(1, settings.SLUG_MAX_ATTEMPTS + 1):
        if not await is_slug_taken(db, candidate, exclude_id):
            return candidate
        candidate = f"{base}-{attempt}"
    raise SlugGenerationError(base, settings.SLUG_MAX_ATTEMPTS)
