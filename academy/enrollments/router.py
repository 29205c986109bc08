from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import UserContext, get_current_user
from academy.database import get_db
from academy.enrollments.service import complete_lecture, get_progress, list_my_enrollments

router = APIRouter(tags=["Enrollments"])


@router.get("/my")
async def my_enrollments(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    enrollments = await list_my_enrollments(db, user)
    return {"enrollments": enrollments, "count": len(enrollments)}


@router.get("/{course_id}")
async def enrollment_progress(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await get_progress(db, course_id, user)


@router.post("/{course_id}/lectures/{lecture_id}/complete")
async def mark_lecture_complete(
    course_id: str,
    lecture_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    enrollment = await complete_lecture(db, course_id, lecture_id, user)
    return {
        "message": "Lecture marked as completed",
        "progress": enrollment["progress"],
        "enrollment": enrollment
    }
