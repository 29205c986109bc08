from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, get_current_user, get_optional_user, require_roles
from academy.courses import service
from academy.courses.models import (
    CourseLevel, CourseStatusFilter, LectureCreate, LectureUpdate, SectionCreate, SectionUpdate
)
from academy.database import get_db
from academy.enrollments.service import enroll_direct
from academy.errors import ValidationError
from academy.uploads import discard_upload, save_upload

router = APIRouter(tags=["Courses"])

course_authors = require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)


def course_form(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    short_description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    original_price: Optional[float] = Form(None),
    categories: Optional[List[str]] = Form(None),
    level: Optional[CourseLevel] = Form(None),
    language: Optional[str] = Form(None),
    tags: Optional[List[str]] = Form(None),
    requirements: Optional[List[str]] = Form(None),
    learning_outcomes: Optional[List[str]] = Form(None),
    certificate_included: Optional[bool] = Form(None),
    is_featured: Optional[bool] = Form(None),
    discount_percentage: Optional[float] = Form(None),
    discount_end_date: Optional[datetime] = Form(None),
) -> dict:
    """Multipart course fields; only the ones actually sent are returned"""
    fields = {
        "title": title,
        "description": description,
        "short_description": short_description,
        "price": price,
        "original_price": original_price,
        "categories": categories,
        "level": level.value if level else None,
        "language": language,
        "tags": tags,
        "requirements": requirements,
        "learning_outcomes": learning_outcomes,
        "certificate_included": certificate_included,
        "is_featured": is_featured,
        "discount_percentage": discount_percentage,
        "discount_end_date": discount_end_date,
    }
    return {k: v for k, v in fields.items() if v is not None}


# ==================== COURSES ====================

@router.get("")
async def list_published_courses(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.list_courses(db, {}, CourseStatusFilter.PUBLISHED)


@router.get("/my-courses")
async def list_my_courses(
    status: Optional[CourseStatusFilter] = Query(None, description="Filter by published/draft"),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(course_authors)
):
    return await service.list_courses(db, {"instructor_id": user.user_id}, status)


@router.get("/all-courses")
async def list_all_courses(
    status: Optional[CourseStatusFilter] = Query(None, description="Filter by published/draft"),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await service.list_courses(db, {}, status)


@router.post("", status_code=201)
async def create_course(
    fields: dict = Depends(course_form),
    cover_image: UploadFile = File(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(course_authors)
):
    if cover_image is None:
        raise ValidationError("Please upload a cover image")

    cover_path = await save_upload(cover_image, "cover_image")
    try:
        return await service.create_course(db, fields, user.user_id, cover_path)
    except Exception:
        discard_upload(cover_path)
        raise


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    viewer: Optional[UserContext] = Depends(get_optional_user)
):
    return await service.get_course_for_viewer(db, course_id, viewer)


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    fields: dict = Depends(course_form),
    cover_image: UploadFile = File(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    cover_path = await save_upload(cover_image, "cover_image") if cover_image else None
    try:
        return await service.update_course(db, course_id, user, fields, cover_path)
    except Exception:
        discard_upload(cover_path)
        raise


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    await service.delete_course(db, course_id, user)
    return {"success": True, "message": "Course deleted"}


@router.put("/{course_id}/toggle-publish")
async def toggle_publish(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    course = await service.toggle_publish(db, course_id, user)
    state = "published" if course["is_published"] else "unpublished"
    return {"message": f"Course {state}", "course": course}


@router.post("/{course_id}/enroll", status_code=201)
async def enroll(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Enroll without a payment step (published courses only)"""
    enrollment = await enroll_direct(db, course_id, user)
    return {"message": "Successfully enrolled in the course", "enrollment": enrollment}


# ==================== SECTIONS ====================

@router.post("/{course_id}/sections", status_code=201)
async def add_section(
    course_id: str,
    payload: SectionCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.add_section(db, course_id, user, payload.model_dump())


@router.put("/{course_id}/sections/{section_id}")
async def update_section(
    course_id: str,
    section_id: str,
    payload: SectionUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.update_section(db, course_id, section_id, user, payload.model_dump())


@router.delete("/{course_id}/sections/{section_id}")
async def delete_section(
    course_id: str,
    section_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.delete_section(db, course_id, section_id, user)


# ==================== LECTURES ====================

@router.post("/{course_id}/sections/{section_id}/lectures", status_code=201)
async def add_lecture(
    course_id: str,
    section_id: str,
    payload: LectureCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.add_lecture(db, course_id, section_id, user, payload.model_dump())


@router.put("/{course_id}/sections/{section_id}/lectures/{lecture_id}")
async def update_lecture(
    course_id: str,
    section_id: str,
    lecture_id: str,
    payload: LectureUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.update_lecture(
        db, course_id, section_id, lecture_id, user, payload.model_dump()
    )


@router.delete("/{course_id}/sections/{section_id}/lectures/{lecture_id}")
async def delete_lecture(
    course_id: str,
    section_id: str,
    lecture_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.delete_lecture(db, course_id, section_id, lecture_id, user)
