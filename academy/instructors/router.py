from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, get_current_user, require_roles
from academy.database import get_db
from academy.instructors import service
from academy.instructors.models import ApplicationReview, InstructorApplicationCreate, InstructorProfileUpdate

router = APIRouter(tags=["Instructors"])


@router.get("")
async def list_instructor_profiles(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.list_profiles(db)


@router.post("/apply", status_code=201)
async def apply_to_teach(
    payload: InstructorApplicationCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(require_roles(UserRole.STUDENT))
):
    return await service.apply(db, user, payload)


@router.get("/my-application")
async def my_application(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.get_my_application(db, user)


@router.get("/applications")
async def list_applications(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await service.list_applications(db)


@router.put("/applications/{application_id}")
async def review_application(
    application_id: str,
    payload: ApplicationReview,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await service.review_application(db, application_id, payload, admin)


@router.put("/profile/me")
async def update_my_profile(
    payload: InstructorProfileUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(require_roles(UserRole.INSTRUCTOR))
):
    return await service.update_my_profile(db, user, payload)


@router.delete("/profile/{profile_id}")
async def delete_profile(
    profile_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    await service.delete_profile(db, profile_id)
    return {"message": "Instructor profile deleted"}
