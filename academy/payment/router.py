from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.permissions import UserContext, get_current_user
from academy.database import get_db
from academy.payment.iyzico import IyzicoClient, get_payment_provider
from academy.payment.models import ConfirmPaymentRequest, PaymentFormRequest
from academy.payment.service import confirm_payment, create_payment_form

router = APIRouter(tags=["Payment"])


@router.post("/create-payment-form", status_code=201)
async def create_payment_form_endpoint(
    payload: PaymentFormRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    provider: IyzicoClient = Depends(get_payment_provider),
    user: UserContext = Depends(get_current_user)
):
    """Initialize an iyzico checkout form and record the pending payment"""
    buyer_ip = request.client.host if request.client else "127.0.0.1"
    return await create_payment_form(db, provider, user, payload, buyer_ip)


@router.post("/confirm-payment")
async def confirm_payment_endpoint(
    payload: ConfirmPaymentRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    provider: IyzicoClient = Depends(get_payment_provider),
    user: UserContext = Depends(get_current_user)
):
    return await confirm_payment(db, provider, user, payload)
