"""
Checkout flow: none -> pending (form created) -> completed | failed
The payments collection records each checkout token and its outcome.
"""

import logging
import secrets
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from academy import config
from academy.auth.permissions import UserContext
from academy.courses.service import get_course
from academy.database import generate_id
from academy.enrollments.models import PaymentMethod
from academy.enrollments.service import create_enrollment
from academy.errors import Forbidden, InvalidState, NotFound, PaymentFailed, ValidationError
from academy.payment.iyzico import IyzicoClient, build_checkout_request, is_successful_payment
from academy.payment.models import CheckoutStatus, ConfirmPaymentRequest, PaymentFormRequest

logger = logging.getLogger(__name__)


async def create_payment_form(
    db: AsyncIOMotorDatabase,
    provider: IyzicoClient,
    user: UserContext,
    data: PaymentFormRequest,
    buyer_ip: str = "127.0.0.1"
) -> dict:
    item_name, item_id = "Course", "COURSE"
    if data.course_id:
        course = await get_course(db, data.course_id)
        item_name, item_id = course["title"], course["course_id"]

    payment_id = generate_id("PAY")
    conversation_id = str(secrets.randbelow(100000000))
    request = build_checkout_request(
        buyer=user.profile,
        amount=data.amount,
        conversation_id=conversation_id,
        basket_id=payment_id,
        item_name=item_name,
        item_id=item_id,
        buyer_ip=buyer_ip,
        include_test_card=not config.IS_PRODUCTION
    )
    result = await provider.create_checkout_form(request)

    await db.payments.insert_one({
        "payment_id": payment_id,
        "token": result["token"],
        "conversation_id": conversation_id,
        "user_id": user.user_id,
        "course_id": data.course_id,
        "amount": data.amount,
        "status": CheckoutStatus.PENDING.value,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    })

    return {
        "payment_form": result.get("checkoutFormContent"),
        "token": result["token"],
        "conversation_id": conversation_id,
    }


async def _close_checkout(db: AsyncIOMotorDatabase, token: str, status: CheckoutStatus, result: dict):
    """Move a pending checkout to its final status; None when it already left pending"""
    return await db.payments.find_one_and_update(
        {"token": token, "status": CheckoutStatus.PENDING.value},
        {"$set": {
            "status": status.value,
            "provider_payment_id": result.get("paymentId"),
            "paid_price": result.get("paidPrice"),
            "error_message": result.get("errorMessage"),
            "updated_at": datetime.utcnow(),
        }},
        return_document=ReturnDocument.AFTER
    )


async def confirm_payment(
    db: AsyncIOMotorDatabase,
    provider: IyzicoClient,
    user: UserContext,
    data: ConfirmPaymentRequest
) -> dict:
    """
    Ask the provider for the checkout verdict and enroll on success

    Raises:
        ValidationError: empty token, or a course other than the one paid for
        NotFound: unknown token or course
        Forbidden: token recorded for another user
        InvalidState: checkout already completed or failed
        PaymentFailed: provider did not report a successful payment
        AlreadyEnrolled: enrollment for the pair already exists
    """
    token = (data.payment_token or "").strip()
    if not token:
        raise ValidationError("Payment token is required")

    payment = await db.payments.find_one({"token": token})
    if not payment:
        raise NotFound("Payment not found")
    if payment.get("user_id") != user.user_id:
        raise Forbidden("This payment belongs to another user")
    if payment.get("status") != CheckoutStatus.PENDING.value:
        raise InvalidState("This payment has already been processed")

    course_id = payment.get("course_id")
    if data.course_id and data.course_id != course_id:
        raise ValidationError("Course does not match this payment")

    result = await provider.retrieve_checkout_form(token, payment.get("conversation_id"))
    succeeded = is_successful_payment(result)
    status = CheckoutStatus.COMPLETED if succeeded else CheckoutStatus.FAILED

    # a concurrent confirmation may have closed the checkout since it was read
    if await _close_checkout(db, token, status, result) is None:
        raise InvalidState("This payment has already been processed")

    if not succeeded:
        logger.warning("Payment %s failed for user %s: %s", token, user.user_id, result.get("errorMessage"))
        raise PaymentFailed(f"Payment failed: {result.get('errorMessage') or result.get('paymentStatus') or 'unknown'}")

    logger.info("Payment %s completed for user %s", token, user.user_id)
    response = {
        "message": "Payment confirmed successfully",
        "payment_status": result.get("paymentStatus"),
        "conversation_id": result.get("conversationId"),
    }

    if course_id:
        course = await get_course(db, course_id)
        paid_price = result.get("paidPrice")
        amount = float(paid_price) if paid_price is not None else course.get("price", 0)
        response["enrollment"] = await create_enrollment(
            db, user.user_id, course_id, amount, PaymentMethod.IYZIPAY
        )

    return response
