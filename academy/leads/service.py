"""
Lead intake for prospective students
A lead is keyed by email and collects every application it submits;
application status changes are kept as an append-only history.
"""

from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from academy.auth.permissions import UserContext
from academy.courses.service import get_course
from academy.database import generate_id, serialize_doc
from academy.errors import NotFound, ValidationError
from academy.leads.models import LeadApplicationCreate, LeadApplicationStatus, StatusUpdate

VALID_STATUSES = [s.value for s in LeadApplicationStatus]


async def find_or_create_lead(db: AsyncIOMotorDatabase, name: str, email: str, phone=None) -> dict:
    """Existing leads get their name/phone refreshed from the latest submission"""
    updates = {"name": name, "updated_at": datetime.utcnow()}
    if phone:
        updates["phone"] = phone

    return await db.leads.find_one_and_update(
        {"email": email.lower()},
        {
            "$set": updates,
            "$setOnInsert": {
                "lead_id": generate_id("LEAD"),
                "applications": [],
                "created_at": datetime.utcnow(),
            },
        },
        upsert=True,
        return_document=ReturnDocument.AFTER
    )


async def submit_application(db: AsyncIOMotorDatabase, data: LeadApplicationCreate) -> dict:
    await get_course(db, data.course_id)
    lead = await find_or_create_lead(db, data.name.strip(), data.email, data.phone)

    now = datetime.utcnow()
    application = {
        "application_id": generate_id("APP"),
        "lead_id": lead["lead_id"],
        "course_id": data.course_id,
        "status": LeadApplicationStatus.SUBMITTED.value,
        "notes": None,
        "status_history": [
            {"status": LeadApplicationStatus.SUBMITTED.value, "changed_at": now, "changed_by": None}
        ],
        "created_at": now,
        "updated_at": now,
    }
    await db.applications.insert_one(application)
    await db.leads.update_one(
        {"lead_id": lead["lead_id"]},
        {"$push": {"applications": application["application_id"]}}
    )
    return serialize_doc(application)


async def list_applications(db: AsyncIOMotorDatabase) -> List[dict]:
    """Newest first, with lead contact and course title resolved"""
    cursor = db.applications.find({}, {"_id": 0}).sort("created_at", -1)
    applications = await cursor.to_list(length=None)

    lead_ids = list({a["lead_id"] for a in applications})
    course_ids = list({a["course_id"] for a in applications})
    leads, courses = {}, {}
    if lead_ids:
        cursor = db.leads.find({"lead_id": {"$in": lead_ids}}, {"_id": 0, "lead_id": 1, "name": 1, "email": 1})
        leads = {lead["lead_id"]: lead for lead in await cursor.to_list(length=None)}
    if course_ids:
        cursor = db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0, "course_id": 1, "title": 1})
        courses = {c["course_id"]: c for c in await cursor.to_list(length=None)}

    for application in applications:
        application["lead"] = leads.get(application["lead_id"])
        application["course"] = courses.get(application["course_id"])
    return applications


async def update_status(
    db: AsyncIOMotorDatabase, application_id: str, data: StatusUpdate, actor: UserContext
) -> dict:
    if data.status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status. Valid values: {', '.join(VALID_STATUSES)}")

    now = datetime.utcnow()
    updates = {"status": data.status, "updated_at": now}
    if data.notes:
        updates["notes"] = data.notes

    application = await db.applications.find_one_and_update(
        {"application_id": application_id},
        {
            "$set": updates,
            "$push": {"status_history": {"status": data.status, "changed_at": now, "changed_by": actor.user_id}},
        },
        return_document=ReturnDocument.AFTER
    )
    if not application:
        raise NotFound("Application not found")
    return serialize_doc(application)
