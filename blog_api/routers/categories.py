from fastapi import APIRouter, Depends, Path
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.errors import BadRequestError, NotFoundError
from blog_api.schemas import INT32_MAX, CategoryCreate, CategoryUpdate
from blog_api.services import category_service

router = APIRouter(prefix="/categories", tags=["categories"])

DUPLICATE_NAME = "Category name already exists"


@router.get("")
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.get_categories(db)


@router.post("", status_code=201)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await category_service.create_category(db, data)
    except IntegrityError as exc:
        # Lost a race with a concurrent create of the same name.
        raise BadRequestError(DUPLICATE_NAME, str(exc.orig)) from exc


@router.put("/{category_id}")
async def update_category(
    data: CategoryUpdate,
    category_id: int = Path(ge=1, le=INT32_MAX),
    db: AsyncSession = Depends(get_db),
):
    try:
        category = await category_service.update_category(db, category_id, data)
    except IntegrityError as exc:
        raise BadRequestError(DUPLICATE_NAME, str(exc.orig)) from exc
    if category is None:
        raise NotFoundError("Category")
    return category


@router.delete("/{category_id}")
async def delete_category(
    category_id: int = Path(ge=1, le=INT32_MAX), db: AsyncSession = Depends(get_db)
):
    deleted = await category_service.delete_category(db, category_id)
    if not deleted:
        raise NotFoundError("Category")
    return {"message": "Category deleted successfully"}
