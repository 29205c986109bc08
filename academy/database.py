import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from academy import config

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGO_URL)
db = client[config.MONGO_DB_NAME]


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix (e.g. CRS_1A2B3C4D5E6F)"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB hands back naive UTC datetimes; store and compare the same way"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_doc(doc) for doc in docs]


# ==================== DATABASE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Create MongoDB indexes
    Unique indexes back every uniqueness invariant of the API
    """
    # Users
    await database.users.create_index("user_id", unique=True)
    await database.users.create_index("email", unique=True)

    # Catalog
    await database.categories.create_index("category_id", unique=True)
    await database.categories.create_index("name", unique=True)
    await database.courses.create_index("course_id", unique=True)
    await database.courses.create_index("title", unique=True)
    await database.courses.create_index([("instructor_id", 1), ("is_published", 1)])
    await database.courses.create_index("categories")

    # Enrollments (one per user/course pair)
    await database.enrollments.create_index("enrollment_id", unique=True)
    await database.enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await database.enrollments.create_index([("course_id", 1), ("is_active", 1)])

    # Payments
    await database.payments.create_index("payment_id", unique=True)
    await database.payments.create_index("token", unique=True)
    await database.payments.create_index("user_id")

    # Promotions
    await database.coupons.create_index("coupon_id", unique=True)
    await database.coupons.create_index("code", unique=True)
    await database.campaigns.create_index("campaign_id", unique=True)
    await database.campaigns.create_index("is_active")

    # Instructors
    await database.instructor_applications.create_index("application_id", unique=True)
    await database.instructor_applications.create_index([("user_id", 1), ("status", 1)])
    await database.instructor_profiles.create_index("profile_id", unique=True)
    await database.instructor_profiles.create_index("user_id", unique=True)

    # Leads
    await database.leads.create_index("lead_id", unique=True)
    await database.leads.create_index("email", unique=True)
    await database.applications.create_index("application_id", unique=True)
    await database.applications.create_index("lead_id")

    logger.info("MongoDB indexes created")
