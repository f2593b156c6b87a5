from fastapi import APIRouter, Depends, File, Form, Path, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import ListingParams
from blog_api.errors import NotFoundError
from blog_api.schemas import INT32_MAX, PaginatedPosts, PostCreate, PostUpdate
from blog_api.services import post_service
from blog_api.services.media_service import MediaService, get_media_service

router = APIRouter(prefix="/posts", tags=["posts"])


class PostForm:
    """
    Form/multipart fields accepted by create and update.

    Only fields the client actually sent end up in ``values()``, so an
    update built from it leaves every other column untouched.
    """

    def __init__(
        self,
        title: str | None = Form(None),
        content: str | None = Form(None),
        author_email: str | None = Form(None, alias="authorEmail"),
        custom_url: str | None = Form(None, alias="customUrl"),
        category_id: str | None = Form(None, alias="CategoryId"),
        meta_description: str | None = Form(None, alias="metaDescription"),
        social_title: str | None = Form(None, alias="socialTitle"),
        social_description: str | None = Form(None, alias="socialDescription"),
        seo_keywords: str | None = Form(None, alias="seoKeywords"),
        youtube_url: str | None = Form(None, alias="youtubeUrl"),
        publish_date: str | None = Form(None, alias="publishDate"),
        banner_image: UploadFile | None = File(None, alias="bannerImage"),
        social_image: UploadFile | None = File(None, alias="socialImage"),
    ) -> None:
        self._fields = {
            "title": title,
            "content": content,
            "author_email": author_email,
            "custom_url": custom_url,
            "category_id": category_id,
            "meta_description": meta_description,
            "social_title": social_title,
            "social_description": social_description,
            "seo_keywords": seo_keywords,
            "youtube_url": youtube_url,
            "publish_date": publish_date,
        }
        self.banner_image = _file_or_none(banner_image)
        self.social_image = _file_or_none(social_image)

    def values(self) -> dict:
        return {k: v for k, v in self._fields.items() if v is not None}


def _file_or_none(file: UploadFile | None) -> UploadFile | None:
    # Browsers submit an empty part for an untouched file input.
    if file is None or not file.filename:
        return None
    return file


@router.get("", response_model=PaginatedPosts)
async def list_posts(
    params: ListingParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.list_posts(
        db,
        page=params.page,
        limit=params.limit,
        category=params.category,
        search=params.search,
        sort_order=params.sort_order,
    )


@router.get("/url/{custom_url}")
async def get_post_by_custom_url(custom_url: str, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post_by_slug(db, custom_url)
    if post is None:
        raise NotFoundError("Post")
    return post


@router.get("/{identifier}")
async def get_post(identifier: str, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post(db, identifier)
    if post is None:
        raise NotFoundError("Post")
    return post


@router.post("", status_code=201)
async def create_post(
    form: PostForm = Depends(),
    db: AsyncSession = Depends(get_db),
    media: MediaService = Depends(get_media_service),
):
    data = PostCreate(**form.values())
    return await post_service.create_post(
        db, data, media, banner_image=form.banner_image, social_image=form.social_image
    )


@router.put("/{post_id}")
async def update_post(
    post_id: int = Path(ge=1, le=INT32_MAX),
    form: PostForm = Depends(),
    db: AsyncSession = Depends(get_db),
    media: MediaService = Depends(get_media_service),
):
    data = PostUpdate(**form.values())
    post = await post_service.update_post(
        db, post_id, data, media, banner_image=form.banner_image, social_image=form.social_image
    )
    if post is None:
        raise NotFoundError("Post")
    return post


@router.delete("/{post_id}")
async def delete_post(
    post_id: int = Path(ge=1, le=INT32_MAX), db: AsyncSession = Depends(get_db)
):
    deleted = await post_service.delete_post(db, post_id)
    if not deleted:
        raise NotFoundError("Post")
    return {"message": "Post deleted successfully"}
