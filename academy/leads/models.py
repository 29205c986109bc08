from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LeadApplicationStatus(str, Enum):
    SUBMITTED = "Submitted"
    REVIEWED = "Reviewed"
    CONTACTED = "Contacted"
    CLOSED = "Closed"


class LeadApplicationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    course_id: str


class StatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None
