"""
Enrollment ledger
One enrollment per (user, course) pair, guarded by a unique index.
User and course counters are derived from the ledger afterwards.
"""

import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.auth.permissions import UserContext
from academy.courses.service import get_course
from academy.database import generate_id, serialize_doc
from academy.enrollments.models import PaymentMethod, PaymentStatus
from academy.errors import AlreadyEnrolled, InvalidState, NotFound

logger = logging.getLogger(__name__)

COURSE_SUMMARY_PROJECTION = {
    "_id": 0, "course_id": 1, "title": 1, "cover_image": 1,
    "instructor_id": 1, "total_lectures": 1, "total_duration": 1,
}


async def create_enrollment(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    amount: float,
    method: PaymentMethod
) -> dict:
    """
    Insert a completed enrollment

    Raises:
        AlreadyEnrolled: the pair already exists (unique index)
    """
    now = datetime.utcnow()
    enrollment = {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course_id,
        "payment_status": PaymentStatus.COMPLETED.value,
        "payment_amount": amount,
        "payment_method": method.value,
        "payment_date": now,
        "progress": 0,
        "completed_lectures": [],
        "current_lecture": None,
        "last_accessed_at": now,
        "completed_at": None,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.enrollments.insert_one(enrollment)
    except DuplicateKeyError:
        raise AlreadyEnrolled("You are already enrolled in this course")

    await sync_enrollment_denormalizations(db, user_id, course_id)
    logger.info("Enrollment %s: user %s -> course %s (%s)", enrollment["enrollment_id"], user_id, course_id, method.value)
    return serialize_doc(enrollment)


async def sync_enrollment_denormalizations(db: AsyncIOMotorDatabase, user_id: str, course_id: str):
    """Safe to run any number of times for the same pair"""
    await db.users.update_one(
        {"user_id": user_id},
        {"$addToSet": {"enrolled_courses": course_id}}
    )
    count = await db.enrollments.count_documents({"course_id": course_id, "is_active": True})
    await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {"enrollment_count": count}}
    )


async def enroll_direct(db: AsyncIOMotorDatabase, course_id: str, user: UserContext) -> dict:
    course = await get_course(db, course_id)
    if not course.get("is_published"):
        raise InvalidState("This course is not published yet")
    return await create_enrollment(db, user.user_id, course_id, 0, PaymentMethod.DIRECT)


# ==================== PROGRESS ====================

def calculate_progress(completed: int, total: int) -> float:
    if total <= 0:
        return 0
    return min(round(completed / total * 100, 2), 100)


async def get_user_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    enrollment = await db.enrollments.find_one({"user_id": user_id, "course_id": course_id})
    if not enrollment:
        raise NotFound("You are not enrolled in this course")
    return enrollment


async def list_my_enrollments(db: AsyncIOMotorDatabase, user: UserContext) -> List[dict]:
    cursor = db.enrollments.find({"user_id": user.user_id}, {"_id": 0}).sort("created_at", -1)
    enrollments = await cursor.to_list(length=None)

    course_ids = [e["course_id"] for e in enrollments]
    courses = {}
    if course_ids:
        cursor = db.courses.find({"course_id": {"$in": course_ids}}, COURSE_SUMMARY_PROJECTION)
        courses = {c["course_id"]: c for c in await cursor.to_list(length=None)}

    for enrollment in enrollments:
        enrollment["course"] = courses.get(enrollment["course_id"])
    return enrollments


async def get_progress(db: AsyncIOMotorDatabase, course_id: str, user: UserContext) -> dict:
    enrollment = await get_user_enrollment(db, user.user_id, course_id)
    await db.enrollments.update_one(
        {"enrollment_id": enrollment["enrollment_id"]},
        {"$set": {"last_accessed_at": datetime.utcnow()}}
    )
    return serialize_doc(enrollment)


async def complete_lecture(db: AsyncIOMotorDatabase, course_id: str, lecture_id: str, user: UserContext) -> dict:
    """Mark a lecture done and recompute progress against the current curriculum"""
    course = await get_course(db, course_id)
    lecture_ids = {
        lecture["lecture_id"]
        for section in course.get("sections", [])
        for lecture in section.get("lectures", [])
    }
    if lecture_id not in lecture_ids:
        raise NotFound("Lecture not found")

    enrollment = await get_user_enrollment(db, user.user_id, course_id)
    completed = list(enrollment.get("completed_lectures", []))
    if lecture_id not in completed:
        completed.append(lecture_id)

    progress = calculate_progress(len(lecture_ids.intersection(completed)), len(lecture_ids))
    now = datetime.utcnow()
    updates = {
        "completed_lectures": completed,
        "current_lecture": lecture_id,
        "progress": progress,
        "last_accessed_at": now,
        "updated_at": now,
    }
    if progress >= 100 and not enrollment.get("completed_at"):
        updates["completed_at"] = now

    enrollment.update(updates)
    await db.enrollments.update_one({"enrollment_id": enrollment["enrollment_id"]}, {"$set": updates})
    return serialize_doc(enrollment)
