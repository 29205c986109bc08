from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from academy.database import generate_id, naive_utc, serialize_doc, serialize_many
from academy.errors import AlreadyExists, InvalidState, NotFound, ValidationError
from academy.promotions.models import CouponCreate, CouponUpdate, DiscountType


# ==================== RULES ====================

def apply_discount(amount: float, discount_type: str, value: float) -> float:
    if discount_type == DiscountType.PERCENTAGE.value:
        return round(amount * (1 - value / 100), 2)
    return round(max(amount - value, 0), 2)


def check_discount_value(discount_type: str, value: float):
    if discount_type == DiscountType.PERCENTAGE.value and not 0 < value <= 100:
        raise ValidationError("Percentage discount must be between 0 and 100")
    if discount_type == DiscountType.FIXED.value and value <= 0:
        raise ValidationError("Fixed discount value must be greater than 0")


def check_usage_limit(usage_limit: int):
    if usage_limit <= 0:
        raise ValidationError("Usage limit must be greater than 0")


def check_expiry(expiry_date: datetime) -> datetime:
    expiry_date = naive_utc(expiry_date)
    if expiry_date <= datetime.utcnow():
        raise ValidationError("Expiry date must be in the future")
    return expiry_date


# ==================== CRUD ====================

async def get_coupon(db: AsyncIOMotorDatabase, coupon_id: str) -> dict:
    coupon = await db.coupons.find_one({"coupon_id": coupon_id})
    if not coupon:
        raise NotFound("Coupon not found")
    return coupon


async def create_coupon(db: AsyncIOMotorDatabase, data: CouponCreate) -> dict:
    if await db.coupons.find_one({"code": data.code}):
        raise AlreadyExists("This coupon code is already in use")

    check_discount_value(data.discount_type.value, data.discount_value)
    check_usage_limit(data.usage_limit)
    expiry_date = check_expiry(data.expiry_date)

    coupon = {
        "coupon_id": generate_id("CPN"),
        "code": data.code,
        "description": data.description,
        "discount_type": data.discount_type.value,
        "discount_value": data.discount_value,
        "usage_limit": data.usage_limit,
        "times_used": 0,
        "expiry_date": expiry_date,
        "is_active": True,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    try:
        await db.coupons.insert_one(coupon)
    except DuplicateKeyError:
        raise AlreadyExists("This coupon code is already in use")
    return serialize_doc(coupon)


async def list_coupons(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.coupons.find({}).sort("created_at", -1)
    return serialize_many(await cursor.to_list(length=None))


async def validate_coupon(db: AsyncIOMotorDatabase, code: str, amount: Optional[float] = None) -> dict:
    """
    Checks applied in order: existence, active flag, expiry, usage

    Raises:
        NotFound: unknown code
        InvalidState: inactive, expired or usage-exhausted coupon
    """
    coupon = await db.coupons.find_one({"code": code.strip().upper()})
    if not coupon:
        raise NotFound("Coupon code not found")
    if not coupon.get("is_active"):
        raise InvalidState("This coupon is not active")
    if coupon["expiry_date"] < datetime.utcnow():
        raise InvalidState("This coupon has expired")
    if coupon.get("times_used", 0) >= coupon.get("usage_limit", 0):
        raise InvalidState("This coupon has reached its usage limit")

    result = {
        "is_valid": True,
        "code": coupon["code"],
        "discount_type": coupon["discount_type"],
        "discount": coupon["discount_value"],
    }
    if amount is not None:
        result["discounted_amount"] = apply_discount(amount, coupon["discount_type"], coupon["discount_value"])
    return result


async def update_coupon(db: AsyncIOMotorDatabase, coupon_id: str, data: CouponUpdate) -> dict:
    coupon = await get_coupon(db, coupon_id)
    updates = data.model_dump(exclude_none=True)

    if "discount_type" in updates:
        updates["discount_type"] = updates["discount_type"].value
    if "discount_value" in updates or "discount_type" in updates:
        check_discount_value(
            updates.get("discount_type", coupon["discount_type"]),
            updates.get("discount_value", coupon["discount_value"])
        )

    if "usage_limit" in updates:
        check_usage_limit(updates["usage_limit"])
        if updates["usage_limit"] < coupon.get("times_used", 0):
            raise ValidationError("New usage limit cannot be lower than the current usage count")

    if "expiry_date" in updates:
        updates["expiry_date"] = check_expiry(updates["expiry_date"])

    if "code" in updates:
        clash = await db.coupons.find_one({"code": updates["code"], "coupon_id": {"$ne": coupon_id}})
        if clash:
            raise AlreadyExists("This coupon code is already in use")

    updates["updated_at"] = datetime.utcnow()
    await db.coupons.update_one({"coupon_id": coupon_id}, {"$set": updates})
    coupon.update(updates)
    return serialize_doc(coupon)


async def delete_coupon(db: AsyncIOMotorDatabase, coupon_id: str):
    coupon = await get_coupon(db, coupon_id)
    if coupon.get("is_active") and coupon.get("times_used", 0) > 0:
        raise InvalidState("An active coupon that has been used cannot be deleted. Deactivate it first.")
    await db.coupons.delete_one({"coupon_id": coupon_id})
