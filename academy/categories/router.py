from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, require_roles
from academy.categories.models import CategoryCreate, CategoryUpdate
from academy.categories.service import (
    create_category, delete_category, get_category, get_category_with_courses,
    list_categories, update_category
)
from academy.database import get_db

router = APIRouter(tags=["Categories"])


@router.get("")
async def list_categories_endpoint(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await list_categories(db)


@router.post("", status_code=201)
async def create_category_endpoint(
    payload: CategoryCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await create_category(db, payload.model_dump())


@router.get("/{category_id}")
async def get_category_endpoint(category_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_category(db, category_id)


@router.get("/{category_id}/withcourses")
async def get_category_courses_endpoint(category_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Category together with its published courses"""
    return await get_category_with_courses(db, category_id)


@router.put("/{category_id}")
async def update_category_endpoint(
    category_id: str,
    payload: CategoryUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await update_category(db, category_id, payload.model_dump())


@router.delete("/{category_id}")
async def delete_category_endpoint(
    category_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    await delete_category(db, category_id)
    return {"success": True, "message": "Category deleted"}
