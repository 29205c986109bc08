from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class InstructorApplicationCreate(BaseModel):
    bio: str = Field(..., min_length=1)
    expertise: List[str] = []


class ApplicationReview(BaseModel):
    status: ReviewDecision


class Socials(BaseModel):
    twitter: Optional[str] = None
    linkedin: Optional[str] = None


class InstructorProfileUpdate(BaseModel):
    bio: Optional[str] = Field(None, min_length=1)
    expertise: Optional[List[str]] = None
    website: Optional[str] = None
    socials: Optional[Socials] = None
