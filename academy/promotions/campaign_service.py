from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.database import generate_id, naive_utc, serialize_doc
from academy.errors import NotFound, ValidationError
from academy.promotions.models import CampaignCreate, CampaignUpdate


def check_date_range(start_date: datetime, end_date: datetime):
    if start_date >= end_date:
        raise ValidationError("End date must be after the start date")


async def ensure_courses_exist(db: AsyncIOMotorDatabase, course_ids: List[str]):
    """Checked one by one so the first missing id is reported"""
    for course_id in course_ids:
        if not await db.courses.find_one({"course_id": course_id}, {"_id": 1}):
            raise ValidationError(f"Course not found: {course_id}")


async def with_course_titles(db: AsyncIOMotorDatabase, campaigns: List[dict]) -> List[dict]:
    course_ids = {cid for c in campaigns for cid in c.get("featured_courses", [])}
    titles = {}
    if course_ids:
        cursor = db.courses.find({"course_id": {"$in": list(course_ids)}}, {"_id": 0, "course_id": 1, "title": 1})
        titles = {c["course_id"]: c["title"] for c in await cursor.to_list(length=None)}

    populated = []
    for campaign in campaigns:
        doc = serialize_doc(campaign)
        doc["featured_courses"] = [
            {"course_id": cid, "title": titles.get(cid)}
            for cid in campaign.get("featured_courses", [])
        ]
        populated.append(doc)
    return populated


async def create_campaign(db: AsyncIOMotorDatabase, data: CampaignCreate) -> dict:
    start_date, end_date = naive_utc(data.start_date), naive_utc(data.end_date)
    check_date_range(start_date, end_date)
    await ensure_courses_exist(db, data.featured_courses)

    campaign = {
        "campaign_id": generate_id("CMP"),
        "title": data.title.strip(),
        "description": data.description.strip(),
        "start_date": start_date,
        "end_date": end_date,
        "featured_courses": data.featured_courses,
        "is_active": data.is_active,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    await db.campaigns.insert_one(campaign)
    return serialize_doc(campaign)


async def list_active_campaigns(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.campaigns.find({"is_active": True}).sort("start_date", 1)
    return await with_course_titles(db, await cursor.to_list(length=None))


async def _load_campaign(db: AsyncIOMotorDatabase, campaign_id: str) -> dict:
    campaign = await db.campaigns.find_one({"campaign_id": campaign_id})
    if not campaign:
        raise NotFound("Campaign not found")
    return campaign


async def get_campaign(db: AsyncIOMotorDatabase, campaign_id: str) -> dict:
    campaign = await _load_campaign(db, campaign_id)
    return (await with_course_titles(db, [campaign]))[0]


async def update_campaign(db: AsyncIOMotorDatabase, campaign_id: str, data: CampaignUpdate) -> dict:
    campaign = await _load_campaign(db, campaign_id)
    updates = data.model_dump(exclude_none=True)

    for field in ("start_date", "end_date"):
        if field in updates:
            updates[field] = naive_utc(updates[field])
    check_date_range(
        updates.get("start_date", campaign["start_date"]),
        updates.get("end_date", campaign["end_date"])
    )
    if "featured_courses" in updates:
        await ensure_courses_exist(db, updates["featured_courses"])

    updates["updated_at"] = datetime.utcnow()
    await db.campaigns.update_one({"campaign_id": campaign_id}, {"$set": updates})
    campaign.update(updates)
    return (await with_course_titles(db, [campaign]))[0]


async def delete_campaign(db: AsyncIOMotorDatabase, campaign_id: str):
    result = await db.campaigns.delete_one({"campaign_id": campaign_id})
    if result.deleted_count == 0:
        raise NotFound("Campaign not found")
