"""
Course authorship service
Courses own their sections and lectures as embedded, ordered lists;
every curriculum edit persists the whole course document.
"""

from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.auth.permissions import UserContext, ensure_owner_or_admin
from academy.courses.models import CourseStatusFilter
from academy.database import generate_id, naive_utc, serialize_doc
from academy.errors import AlreadyExists, Forbidden, NotFound, ValidationError
from academy.uploads import discard_upload

UPDATABLE_FIELDS = {
    "title", "description", "short_description", "price", "original_price",
    "categories", "level", "language", "tags", "requirements", "learning_outcomes",
    "certificate_included", "is_featured", "discount_percentage", "discount_end_date",
}


# ==================== DERIVED FIELDS ====================

def recalculate_totals(course: dict) -> dict:
    """total_duration / total_lectures always follow the embedded sections"""
    sections = course.get("sections") or []
    course["total_duration"] = sum(
        lecture.get("duration") or 0
        for section in sections
        for lecture in section.get("lectures", [])
    )
    course["total_lectures"] = sum(len(section.get("lectures", [])) for section in sections)
    return course


def discounted_price(course: dict, now: Optional[datetime] = None) -> float:
    now = now or datetime.utcnow()
    price = course.get("price") or 0
    percentage = course.get("discount_percentage") or 0
    end_date = course.get("discount_end_date")
    if percentage > 0 and end_date and end_date > now:
        return round(price * (1 - percentage / 100), 2)
    return price


# ==================== VALIDATION ====================

def validate_course_fields(fields: dict, creating: bool) -> dict:
    """Collects every problem before failing, like a form validator"""
    errors = []

    if creating or "title" in fields:
        title = (fields.get("title") or "").strip()
        if len(title) < 3:
            errors.append("Course title must be at least 3 characters")
        fields["title"] = title

    if creating or "description" in fields:
        description = (fields.get("description") or "").strip()
        if len(description) < 10:
            errors.append("Course description must be at least 10 characters")
        fields["description"] = description

    if len(fields.get("short_description") or "") > 200:
        errors.append("Short description cannot exceed 200 characters")

    if creating or "price" in fields:
        price = fields.get("price")
        if price is None or price < 0:
            errors.append("Enter a valid price")

    if creating or "categories" in fields:
        categories = [c for c in (fields.get("categories") or []) if c]
        if not categories:
            errors.append("At least one category is required")
        fields["categories"] = categories

    percentage = fields.get("discount_percentage")
    if percentage is not None and not 0 <= percentage <= 100:
        errors.append("Discount percentage must be between 0 and 100")

    if "discount_end_date" in fields:
        fields["discount_end_date"] = naive_utc(fields["discount_end_date"])

    if errors:
        raise ValidationError("Please fix the following errors", errors)
    return fields


async def ensure_categories_exist(db: AsyncIOMotorDatabase, category_ids: List[str]):
    for category_id in category_ids:
        if not await db.categories.find_one({"category_id": category_id}):
            raise ValidationError(f"Category {category_id} not found")


async def ensure_unique_title(db: AsyncIOMotorDatabase, title: str, exclude_course_id: Optional[str] = None):
    query = {"title": title}
    if exclude_course_id:
        query["course_id"] = {"$ne": exclude_course_id}
    if await db.courses.find_one(query):
        raise AlreadyExists("A course with this title already exists")


# ==================== POPULATION ====================

async def populate_courses(db: AsyncIOMotorDatabase, courses: List[dict]) -> List[dict]:
    """Resolve instructor (name, email) and category names in two queries"""
    instructor_ids = {c.get("instructor_id") for c in courses if c.get("instructor_id")}
    category_ids = {cid for c in courses for cid in c.get("categories", [])}

    instructors = {}
    if instructor_ids:
        cursor = db.users.find(
            {"user_id": {"$in": list(instructor_ids)}},
            {"_id": 0, "user_id": 1, "name": 1, "email": 1}
        )
        instructors = {u["user_id"]: u for u in await cursor.to_list(length=None)}

    categories = {}
    if category_ids:
        cursor = db.categories.find(
            {"category_id": {"$in": list(category_ids)}},
            {"_id": 0, "category_id": 1, "name": 1}
        )
        categories = {c["category_id"]: c for c in await cursor.to_list(length=None)}

    populated = []
    for course in courses:
        doc = serialize_doc(course)
        doc["instructor"] = instructors.get(course.get("instructor_id"))
        doc["categories"] = [
            categories.get(cid, {"category_id": cid, "name": None})
            for cid in course.get("categories", [])
        ]
        doc["discounted_price"] = discounted_price(course)
        populated.append(doc)
    return populated


async def populate_course(db: AsyncIOMotorDatabase, course: dict) -> dict:
    return (await populate_courses(db, [course]))[0]


# ==================== COURSE CRUD ====================

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise NotFound("Course not found")
    return course


async def load_owned_course(db: AsyncIOMotorDatabase, course_id: str, actor: UserContext) -> dict:
    course = await get_course(db, course_id)
    ensure_owner_or_admin(actor, course.get("instructor_id"), "course")
    return course


async def save_course(db: AsyncIOMotorDatabase, course: dict) -> dict:
    """Persist the course aggregate as a unit, totals recomputed first"""
    recalculate_totals(course)
    course["updated_at"] = datetime.utcnow()
    await db.courses.replace_one({"course_id": course["course_id"]}, course)
    return course


async def create_course(db: AsyncIOMotorDatabase, fields: dict, instructor_id: str, cover_image: str) -> dict:
    fields = validate_course_fields(fields, creating=True)
    await ensure_categories_exist(db, fields["categories"])
    await ensure_unique_title(db, fields["title"])

    course = {
        "course_id": generate_id("CRS"),
        "title": fields["title"],
        "description": fields["description"],
        "short_description": fields.get("short_description"),
        "instructor_id": instructor_id,
        "categories": fields["categories"],
        "price": fields["price"],
        "original_price": fields.get("original_price"),
        "cover_image": cover_image,
        "is_published": False,
        "level": fields.get("level", "Beginner"),
        "language": fields.get("language", "Turkish"),
        "tags": fields.get("tags", []),
        "requirements": fields.get("requirements", []),
        "learning_outcomes": fields.get("learning_outcomes", []),
        "certificate_included": fields.get("certificate_included", False),
        "is_featured": fields.get("is_featured", False),
        "discount_percentage": fields.get("discount_percentage", 0),
        "discount_end_date": fields.get("discount_end_date"),
        "sections": [],
        "enrollment_count": 0,
        "rating": 0.0,
        "review_count": 0,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    recalculate_totals(course)

    try:
        await db.courses.insert_one(course)
    except DuplicateKeyError:
        raise AlreadyExists("A course with this title already exists")
    return await populate_course(db, course)


async def list_courses(db: AsyncIOMotorDatabase, query: dict, status: Optional[CourseStatusFilter] = None) -> List[dict]:
    query = dict(query)
    if status == CourseStatusFilter.PUBLISHED:
        query["is_published"] = True
    elif status == CourseStatusFilter.DRAFT:
        query["is_published"] = False

    cursor = db.courses.find(query).sort("created_at", -1)
    return await populate_courses(db, await cursor.to_list(length=None))


async def get_course_for_viewer(db: AsyncIOMotorDatabase, course_id: str, viewer: Optional[UserContext]) -> dict:
    """Published courses are public; drafts only for their owner or an Admin"""
    course = await get_course(db, course_id)
    if not course.get("is_published"):
        is_privileged = viewer is not None and (
            viewer.is_admin or viewer.user_id == course.get("instructor_id")
        )
        if not is_privileged:
            raise Forbidden("You do not have access to this course")
    return await populate_course(db, course)


async def update_course(
    db: AsyncIOMotorDatabase,
    course_id: str,
    actor: UserContext,
    fields: dict,
    new_cover_image: Optional[str] = None
) -> dict:
    """Partial merge; a new cover image replaces and discards the old file"""
    course = await load_owned_course(db, course_id, actor)

    fields = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    fields = validate_course_fields(fields, creating=False)
    if "categories" in fields:
        await ensure_categories_exist(db, fields["categories"])
    if "title" in fields:
        await ensure_unique_title(db, fields["title"], exclude_course_id=course_id)

    course.update(fields)

    previous_cover = None
    if new_cover_image:
        previous_cover = course.get("cover_image")
        course["cover_image"] = new_cover_image

    await save_course(db, course)
    if previous_cover and previous_cover != new_cover_image:
        discard_upload(previous_cover)
    return await populate_course(db, course)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str, actor: UserContext):
    """Enrollments referencing the course are left in place"""
    course = await load_owned_course(db, course_id, actor)
    await db.courses.delete_one({"course_id": course_id})
    discard_upload(course.get("cover_image"))


async def toggle_publish(db: AsyncIOMotorDatabase, course_id: str, actor: UserContext) -> dict:
    course = await load_owned_course(db, course_id, actor)
    course["is_published"] = not course.get("is_published", False)
    course["published_at"] = datetime.utcnow() if course["is_published"] else None
    await save_course(db, course)
    return await populate_course(db, course)


# ==================== CURRICULUM ====================

def find_section(course: dict, section_id: str) -> dict:
    for section in course.get("sections", []):
        if section["section_id"] == section_id:
            return section
    raise NotFound("Section not found")


def find_lecture(section: dict, lecture_id: str) -> dict:
    for lecture in section.get("lectures", []):
        if lecture["lecture_id"] == lecture_id:
            return lecture
    raise NotFound("Lecture not found")


def _sort_by_order(items: List[dict]):
    items.sort(key=lambda item: item.get("order", 0))


async def add_section(db: AsyncIOMotorDatabase, course_id: str, actor: UserContext, data: dict) -> dict:
    course = await load_owned_course(db, course_id, actor)
    sections = course.setdefault("sections", [])

    sections.append({
        "section_id": generate_id("SEC"),
        "title": data["title"],
        "description": data.get("description"),
        "order": data.get("order") or len(sections) + 1,
        "lectures": [],
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    })
    _sort_by_order(sections)

    await save_course(db, course)
    return await populate_course(db, course)


async def update_section(
    db: AsyncIOMotorDatabase, course_id: str, section_id: str, actor: UserContext, data: dict
) -> dict:
    course = await load_owned_course(db, course_id, actor)
    section = find_section(course, section_id)

    section.update({k: v for k, v in data.items() if v is not None})
    section["updated_at"] = datetime.utcnow()
    _sort_by_order(course["sections"])

    await save_course(db, course)
    return await populate_course(db, course)


async def delete_section(db: AsyncIOMotorDatabase, course_id: str, section_id: str, actor: UserContext) -> dict:
    course = await load_owned_course(db, course_id, actor)
    section = find_section(course, section_id)
    course["sections"].remove(section)

    await save_course(db, course)
    return await populate_course(db, course)


async def add_lecture(
    db: AsyncIOMotorDatabase, course_id: str, section_id: str, actor: UserContext, data: dict
) -> dict:
    course = await load_owned_course(db, course_id, actor)
    section = find_section(course, section_id)
    lectures = section.setdefault("lectures", [])

    lectures.append({
        "lecture_id": generate_id("LEC"),
        "title": data["title"],
        "duration": data["duration"],
        "video_url": data.get("video_url"),
        "content": data.get("content"),
        "is_free": data.get("is_free", False),
        "order": data.get("order") or len(lectures) + 1,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    })
    _sort_by_order(lectures)

    await save_course(db, course)
    return await populate_course(db, course)


async def update_lecture(
    db: AsyncIOMotorDatabase, course_id: str, section_id: str, lecture_id: str, actor: UserContext, data: dict
) -> dict:
    course = await load_owned_course(db, course_id, actor)
    section = find_section(course, section_id)
    lecture = find_lecture(section, lecture_id)

    lecture.update({k: v for k, v in data.items() if v is not None})
    lecture["updated_at"] = datetime.utcnow()
    _sort_by_order(section["lectures"])

    await save_course(db, course)
    return await populate_course(db, course)


async def delete_lecture(
    db: AsyncIOMotorDatabase, course_id: str, section_id: str, lecture_id: str, actor: UserContext
) -> dict:
    course = await load_owned_course(db, course_id, actor)
    section = find_section(course, section_id)
    lecture = find_lecture(section, lecture_id)
    section["lectures"].remove(lecture)

    await save_course(db, course)
    return await populate_course(db, course)
