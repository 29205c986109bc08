from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ==================== COUPONS ====================

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=4)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: float
    usage_limit: int = 100
    expiry_date: datetime

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=4)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    usage_limit: Optional[int] = None
    expiry_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


# ==================== CAMPAIGNS ====================

class CampaignCreate(BaseModel):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    start_date: datetime
    end_date: datetime
    featured_courses: List[str] = Field(..., min_length=1)
    is_active: bool = False


class CampaignUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    featured_courses: Optional[List[str]] = Field(None, min_length=1)
    is_active: Optional[bool] = None
