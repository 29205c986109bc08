import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy import config
from academy.auth.auth_utils import hash_password, verify_password
from academy.auth.models import RegisterRequest, UserRole
from academy.auth.permissions import USER_PROJECTION
from academy.database import generate_id
from academy.errors import AlreadyExists, Forbidden, NotFound, Unauthenticated

logger = logging.getLogger(__name__)


def format_user(user: dict) -> dict:
    """Public view of a user document"""
    return {
        "user_id": user["user_id"],
        "name": user.get("name"),
        "email": user.get("email"),
        "avatar": user.get("avatar"),
        "role": user.get("role"),
        "enrolled_courses": user.get("enrolled_courses", []),
    }


async def create_user(db: AsyncIOMotorDatabase, name: str, email: str, password: str, role: str) -> dict:
    email = email.lower()
    if await db.users.find_one({"email": email}):
        raise AlreadyExists("Email address is already registered")

    user = {
        "user_id": generate_id("USR"),
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": role,
        "avatar": None,
        "enrolled_courses": [],
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        raise AlreadyExists("Email address is already registered")
    return user


async def register_user(db: AsyncIOMotorDatabase, data: RegisterRequest) -> dict:
    """Self-service registration; Admin accounts cannot be self-assigned"""
    if data.role == UserRole.ADMIN:
        raise Forbidden("Admin accounts cannot be created through registration")
    return await create_user(db, data.name, data.email, data.password, data.role.value)


async def authenticate(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    user = await db.users.find_one({"email": email.lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        logger.warning("Failed login for %s", email)
        raise Unauthenticated("Invalid email or password")
    return user


async def replace_avatar(db: AsyncIOMotorDatabase, user_id: str, avatar_path: str) -> Optional[str]:
    """Store the new avatar path; returns the previous one for cleanup"""
    user = await db.users.find_one({"user_id": user_id}, {"avatar": 1})
    if not user:
        raise NotFound("User not found")

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"avatar": avatar_path, "updated_at": datetime.utcnow()}}
    )
    return user.get("avatar")


async def list_users(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.users.find({}, USER_PROJECTION).sort("created_at", -1)
    users = await cursor.to_list(length=None)
    return [format_user(u) for u in users]


async def delete_user(db: AsyncIOMotorDatabase, user_id: str):
    """Explicit Admin deletion; owned courses and enrollments stay"""
    result = await db.users.delete_one({"user_id": user_id})
    if result.deleted_count == 0:
        raise NotFound("User not found")


async def ensure_admin_user(db: AsyncIOMotorDatabase):
    """Seed the configured Admin account on startup"""
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        return
    if await db.users.find_one({"email": config.ADMIN_EMAIL.lower()}):
        return
    await create_user(db, "Admin", config.ADMIN_EMAIL, config.ADMIN_PASSWORD, UserRole.ADMIN.value)
    logger.info("Seeded admin account %s", config.ADMIN_EMAIL)
