from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class CourseStatusFilter(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"


# ==================== SECTION MODELS ====================

class SectionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)


class SectionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)


# ==================== LECTURE MODELS ====================

class LectureCreate(BaseModel):
    title: str = Field(..., min_length=1)
    duration: float = Field(..., ge=0)  # minutes
    video_url: Optional[str] = None
    content: Optional[str] = None
    is_free: bool = False
    order: Optional[int] = Field(None, ge=1)


class LectureUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    duration: Optional[float] = Field(None, ge=0)
    video_url: Optional[str] = None
    content: Optional[str] = None
    is_free: Optional[bool] = None
    order: Optional[int] = Field(None, ge=1)
