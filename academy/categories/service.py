from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from academy.database import generate_id, serialize_doc, serialize_many
from academy.errors import AlreadyExists, InvalidState, NotFound


async def create_category(db: AsyncIOMotorDatabase, data: dict) -> dict:
    name = data["name"].strip()
    if await db.categories.find_one({"name": name}):
        raise AlreadyExists("A category with this name already exists")

    category = {
        "category_id": generate_id("CAT"),
        "name": name,
        "description": data.get("description"),
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    await db.categories.insert_one(category)
    return serialize_doc(category)


async def list_categories(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.categories.find({}).sort("name", 1)
    return serialize_many(await cursor.to_list(length=None))


async def get_category(db: AsyncIOMotorDatabase, category_id: str) -> dict:
    category = await db.categories.find_one({"category_id": category_id})
    if not category:
        raise NotFound("Category not found")
    return serialize_doc(category)


async def update_category(db: AsyncIOMotorDatabase, category_id: str, updates: dict) -> dict:
    updates = {k: v for k, v in updates.items() if v is not None}
    if "name" in updates:
        updates["name"] = updates["name"].strip()
        clash = await db.categories.find_one({
            "name": updates["name"],
            "category_id": {"$ne": category_id}
        })
        if clash:
            raise AlreadyExists("A category with this name already exists")

    updates["updated_at"] = datetime.utcnow()
    category = await db.categories.find_one_and_update(
        {"category_id": category_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not category:
        raise NotFound("Category not found")
    return serialize_doc(category)


async def delete_category(db: AsyncIOMotorDatabase, category_id: str):
    """Blocked while any course still references the category"""
    await get_category(db, category_id)

    courses_in_category = await db.courses.count_documents({"categories": category_id})
    if courses_in_category > 0:
        raise InvalidState(
            "Cannot delete a category that still has courses. Move the courses to another category first."
        )

    await db.categories.delete_one({"category_id": category_id})


async def get_category_with_courses(db: AsyncIOMotorDatabase, category_id: str) -> dict:
    category = await get_category(db, category_id)
    cursor = db.courses.find(
        {"categories": category_id, "is_published": True},
        {"_id": 0, "sections": 0}
    ).sort("created_at", -1)
    courses = await cursor.to_list(length=None)
    return {"category": category, "courses": courses}
