"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Listing and lookups go through the cache-aside layer (Redis, falling
  back to the database).  Cache keys encode every parameter that shapes
  the response; every write purges the ``posts:*`` namespace.
- The category is the only relationship and is always loaded explicitly
  (``contains_eager`` for the filtered listing, ``joinedload`` for
  lookups), since ``Post.category`` is ``lazy="raise"``.
- Everything that can reject a request (schema validation, category
  reference, custom URL uniqueness, image type/size) runs before the
  first write, and images are uploaded before the row is inserted.
- Service functions flush but do not commit; the transaction boundary
  belongs to the ``get_db`` dependency.
"""
import logging
import math
from datetime import date

from fastapi import UploadFile
from sqlalchemy import Select, asc, desc, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, joinedload

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.errors import BadRequestError
from blog_api.models import Category, Post
from blog_api.schemas import INT32_MAX, PaginatedPosts, PostCreate, PostUpdate
from blog_api.services.category_service import category_to_dict, get_category
from blog_api.services.media_service import BANNER_FOLDER, SOCIAL_FOLDER, MediaService
from blog_api.services.slug_service import generate_unique_slug, is_slug_taken

logger = logging.getLogger(__name__)

SLUG_TAKEN_MESSAGE = "Custom URL is already taken"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def post_to_dict(post: Post) -> dict:
    """Serialise a Post (with its category loaded) to the API shape."""
    category = category_to_dict(post.category)
    if category is not None:
        del category["createdAt"], category["updatedAt"]
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "authorEmail": post.author_email,
        "customUrl": post.custom_url,
        "bannerImageUrl": post.banner_image_url,
        "socialImageUrl": post.social_image_url,
        "metaDescription": post.meta_description,
        "socialTitle": post.social_title,
        "socialDescription": post.social_description,
        "seoKeywords": list(post.seo_keywords or []),
        "youtubeUrl": post.youtube_url,
        "publishDate": post.publish_date.isoformat() if post.publish_date else None,
        "createdAt": post.created_at.isoformat() if post.created_at else None,
        "updatedAt": post.updated_at.isoformat() if post.updated_at else None,
        "CategoryId": post.category_id,
        "Category": category,
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _apply_filters(q: Select, category: str | None, search: str | None) -> Select:
    if category:
        q = q.where(Category.name == category)
    if search:
        q = q.where(
            or_(
                Post.title.icontains(search, autoescape=True),
                Post.content.icontains(search, autoescape=True),
            )
        )
    return q


async def _load_post(db: AsyncSession, *criteria) -> Post | None:
    """
    Fetch one post with its category.  ``populate_existing`` refreshes
    instances already in the session, which may predate a bulk
    category reassignment or the row's own insert.
    """
    q = (
        select(Post)
        .where(*criteria)
        .options(joinedload(Post.category))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


def _is_post_id(identifier: str) -> bool:
    # isdigit alone also accepts superscripts and other non-ASCII digits
    return (
        identifier.isascii()
        and identifier.isdigit()
        and len(identifier) <= len(str(INT32_MAX))
        and int(identifier) <= INT32_MAX
    )


async def _check_category(db: AsyncSession, category_id: int | None) -> None:
    if category_id is not None and await get_category(db, category_id) is None:
        raise BadRequestError("Category does not exist", f"CategoryId={category_id}")


async def _check_custom_url(
    db: AsyncSession, custom_url: str | None, exclude_id: int | None = None
) -> None:
    if custom_url is not None and await is_slug_taken(db, custom_url, exclude_id):
        raise BadRequestError(SLUG_TAKEN_MESSAGE, f"customUrl={custom_url!r}")


async def _upload_images(
    media: MediaService,
    banner_image: UploadFile | None,
    social_image: UploadFile | None,
) -> dict[str, str]:
    """Return the model columns to set for any images that were supplied."""
    if banner_image is None and social_image is None:
        return {}
    urls = await media.upload_images(
        {BANNER_FOLDER: banner_image, SOCIAL_FOLDER: social_image}
    )
    columns = {}
    if BANNER_FOLDER in urls:
        columns["banner_image_url"] = urls[BANNER_FOLDER]
    if SOCIAL_FOLDER in urls:
        columns["social_image_url"] = urls[SOCIAL_FOLDER]
    return columns


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int = 6,
    category: str | None = None,
    search: str | None = None,
    sort_order: str = "desc",
) -> PaginatedPosts:
    """
    Return one page of posts, newest first unless *sort_order* is "asc".

    Two SQL statements are issued on a cache miss: a DISTINCT count over
    the filtered join and the page itself with the category eagerly
    joined.
    """
    sort_order = "asc" if sort_order == "asc" else "desc"
    cache_key = cache.list_key(page, limit, category, search, sort_order)
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedPosts(**cached)

    count_q = _apply_filters(
        select(func.count(distinct(Post.id))).select_from(Post).outerjoin(Post.category),
        category,
        search,
    )
    total: int = (await db.execute(count_q)).scalar_one()

    direction = asc if sort_order == "asc" else desc
    posts_q = _apply_filters(
        select(Post)
        .outerjoin(Post.category)
        .options(contains_eager(Post.category))
        .execution_options(populate_existing=True),
        category,
        search,
    )
    posts_q = (
        posts_q.order_by(
            direction(Post.publish_date), direction(Post.created_at), direction(Post.id)
        )
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(posts_q)
    posts = result.unique().scalars().all()

    response = PaginatedPosts(
        totalItems=total,
        posts=[post_to_dict(p) for p in posts],
        currentPage=page,
        totalPages=math.ceil(total / limit),
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_post_by_slug(db: AsyncSession, custom_url: str) -> dict | None:
    """Return the post whose custom URL is *custom_url*, or None."""
    cache_key = cache.detail_key("slug", custom_url)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    post = await _load_post(db, Post.custom_url == custom_url)
    if post is None:
        return None
    data = post_to_dict(post)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_post(db: AsyncSession, identifier: str) -> dict | None:
    """
    Look a post up by slug, falling back to its numeric id.

    A post found by id that also has a slug comes back flagged with
    ``shouldRedirect`` and ``redirectTo`` so the client can move to the
    canonical slug URL.  Returns None when neither lookup matches.
    """
    data = await get_post_by_slug(db, identifier)
    if data is not None or not _is_post_id(identifier):
        return data

    cache_key = cache.detail_key("id", identifier)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    post = await _load_post(db, Post.id == int(identifier))
    if post is None:
        return None
    data = post_to_dict(post)
    if post.custom_url:
        data["shouldRedirect"] = True
        data["redirectTo"] = f"/posts/{post.custom_url}"
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def create_post(
    db: AsyncSession,
    data: PostCreate,
    media: MediaService,
    banner_image: UploadFile | None = None,
    social_image: UploadFile | None = None,
) -> dict:
    """
    Create a post and return it joined with its category.

    Without an explicit custom URL the slug is generated from the stored
    title once the row (and its id) exists.
    """
    await _check_category(db, data.category_id)
    await _check_custom_url(db, data.custom_url)
    image_columns = await _upload_images(media, banner_image, social_image)

    post = Post(
        title=data.title,
        content=data.content,
        author_email=data.author_email,
        custom_url=data.custom_url,
        category_id=data.category_id,
        meta_description=data.meta_description,
        social_title=data.social_title,
        social_description=data.social_description,
        seo_keywords=data.seo_keywords,
        youtube_url=data.youtube_url,
        publish_date=data.publish_date or date.today(),
        **image_columns,
    )
    db.add(post)
    await db.flush()

    if post.custom_url is None:
        post.custom_url = await generate_unique_slug(db, post.title, exclude_id=post.id)
        await db.flush()

    await cache.invalidate_posts()
    logger.info("Created post id=%s custom_url=%r", post.id, post.custom_url)
    return post_to_dict(await _load_post(db, Post.id == post.id))


async def update_post(
    db: AsyncSession,
    post_id: int,
    data: PostUpdate,
    media: MediaService,
    banner_image: UploadFile | None = None,
    social_image: UploadFile | None = None,
) -> dict | None:
    """
    Apply the fields set on *data* and any new images to the post.

    Returns None when the post does not exist.  When the request carries
    no custom URL, the slug is regenerated from the (possibly new) title.
    Replaced images stay on the image host.
    """
    post = await db.get(Post, post_id)
    if post is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    custom_url = changes.pop("custom_url", None)

    if "category_id" in changes:
        await _check_category(db, changes["category_id"])
    await _check_custom_url(db, custom_url, exclude_id=post_id)
    changes.update(await _upload_images(media, banner_image, social_image))

    # Unset means unchanged; required columns never accept an explicit null.
    for field in ("title", "content", "author_email", "publish_date"):
        if field in changes and changes[field] is None:
            del changes[field]

    for field, value in changes.items():
        setattr(post, field, value)

    post.custom_url = custom_url or await generate_unique_slug(
        db, post.title, exclude_id=post_id
    )
    await db.flush()

    await cache.invalidate_posts()
    logger.info("Updated post id=%s fields=%s", post_id, sorted(changes))
    return post_to_dict(await _load_post(db, Post.id == post_id))


async def delete_post(db: AsyncSession, post_id: int) -> bool:
    """
    Delete the post.  Returns False when it does not exist.

    Images on the external host are left in place.
    """
    post = await db.get(Post, post_id)
    if post is None:
        return False

    await db.delete(post)
    await db.flush()
    await cache.invalidate_posts()
    logger.info("Deleted post id=%s", post_id)
    return True
