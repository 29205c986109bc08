from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentFormRequest(BaseModel):
    amount: float = Field(..., gt=0)
    course_id: Optional[str] = None


class ConfirmPaymentRequest(BaseModel):
    payment_token: Optional[str] = None
    course_id: Optional[str] = None
