"""
Instructor onboarding
Approval is the only review outcome with side effects: role promotion
and a profile built from the application.
"""

import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext
from academy.database import generate_id, serialize_doc, serialize_many
from academy.errors import AlreadyExists, InvalidState, NotFound
from academy.instructors.models import (
    ApplicationReview, ApplicationStatus, InstructorApplicationCreate, InstructorProfileUpdate
)

logger = logging.getLogger(__name__)


async def _attach_users(db: AsyncIOMotorDatabase, docs: List[dict]) -> List[dict]:
    user_ids = list({d["user_id"] for d in docs})
    users = {}
    if user_ids:
        cursor = db.users.find({"user_id": {"$in": user_ids}}, {"_id": 0, "user_id": 1, "name": 1, "email": 1})
        users = {u["user_id"]: u for u in await cursor.to_list(length=None)}

    result = serialize_many(docs)
    for doc in result:
        doc["user"] = users.get(doc["user_id"])
    return result


# ==================== APPLICATIONS ====================

async def apply(db: AsyncIOMotorDatabase, user: UserContext, data: InstructorApplicationCreate) -> dict:
    pending = await db.instructor_applications.find_one({
        "user_id": user.user_id,
        "status": ApplicationStatus.PENDING.value
    })
    if pending:
        raise AlreadyExists("You already have a pending instructor application")

    application = {
        "application_id": generate_id("IAP"),
        "user_id": user.user_id,
        "bio": data.bio,
        "expertise": data.expertise,
        "status": ApplicationStatus.PENDING.value,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    await db.instructor_applications.insert_one(application)
    return serialize_doc(application)


async def get_my_application(db: AsyncIOMotorDatabase, user: UserContext) -> dict:
    cursor = db.instructor_applications.find({"user_id": user.user_id}).sort("created_at", -1).limit(1)
    applications = await cursor.to_list(length=1)
    if not applications:
        raise NotFound("Application not found")
    return serialize_doc(applications[0])


async def list_applications(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.instructor_applications.find({}).sort("created_at", -1)
    return await _attach_users(db, await cursor.to_list(length=None))


async def review_application(
    db: AsyncIOMotorDatabase, application_id: str, review: ApplicationReview, reviewer: UserContext
) -> dict:
    application = await db.instructor_applications.find_one({"application_id": application_id})
    if not application:
        raise NotFound("Application not found")
    if application["status"] != ApplicationStatus.PENDING.value:
        raise InvalidState(f"Application has already been {application['status']}")
    if review.status.value == ApplicationStatus.APPROVED.value:
        applicant = await db.users.find_one({"user_id": application["user_id"]})
        if not applicant or applicant.get("role") != UserRole.STUDENT.value:
            raise InvalidState("Only Students can be promoted to Instructor")

    now = datetime.utcnow()
    application = await db.instructor_applications.find_one_and_update(
        {"application_id": application_id},
        {"$set": {"status": review.status.value, "reviewed_by": reviewer.user_id, "updated_at": now}},
        return_document=ReturnDocument.AFTER
    )

    if review.status.value == ApplicationStatus.APPROVED.value:
        await db.users.update_one(
            {"user_id": application["user_id"]},
            {"$set": {"role": UserRole.INSTRUCTOR.value, "updated_at": now}}
        )
        await db.instructor_profiles.update_one(
            {"user_id": application["user_id"]},
            {
                "$set": {"bio": application["bio"], "expertise": application["expertise"], "updated_at": now},
                "$setOnInsert": {
                    "profile_id": generate_id("IPR"),
                    "website": None,
                    "socials": {"twitter": None, "linkedin": None},
                    "created_at": now,
                },
            },
            upsert=True
        )
        logger.info("User %s promoted to Instructor", application["user_id"])

    return serialize_doc(application)


# ==================== PROFILES ====================

async def list_profiles(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.instructor_profiles.find({}).sort("created_at", -1)
    return await _attach_users(db, await cursor.to_list(length=None))


async def update_my_profile(db: AsyncIOMotorDatabase, user: UserContext, data: InstructorProfileUpdate) -> dict:
    updates = data.model_dump(exclude_none=True)
    updates["updated_at"] = datetime.utcnow()
    profile = await db.instructor_profiles.find_one_and_update(
        {"user_id": user.user_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not profile:
        raise NotFound("Instructor profile not found. Apply to become an instructor first.")
    return (await _attach_users(db, [profile]))[0]


async def delete_profile(db: AsyncIOMotorDatabase, profile_id: str):
    """Demotes the user to Student; their courses stay as they are"""
    profile = await db.instructor_profiles.find_one({"profile_id": profile_id})
    if not profile:
        raise NotFound("Profile not found")

    await db.users.update_one(
        {"user_id": profile["user_id"]},
        {"$set": {"role": UserRole.STUDENT.value, "updated_at": datetime.utcnow()}}
    )
    await db.instructor_profiles.delete_one({"profile_id": profile_id})
    logger.info("Instructor profile %s removed, user %s demoted", profile_id, profile["user_id"])
