from typing import Optional

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, require_roles
from academy.database import get_db
from academy.promotions.coupon_service import (
    create_coupon, delete_coupon, list_coupons, update_coupon, validate_coupon
)
from academy.promotions.models import CouponCreate, CouponUpdate

router = APIRouter(tags=["Coupons"])


@router.get("/validate/{code}")
async def validate_coupon_endpoint(
    code: str,
    amount: Optional[float] = Query(None, ge=0, description="Preview the discounted amount"),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await validate_coupon(db, code, amount)


@router.get("")
async def list_coupons_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await list_coupons(db)


@router.post("", status_code=201)
async def create_coupon_endpoint(
    payload: CouponCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await create_coupon(db, payload)


@router.put("/{coupon_id}")
async def update_coupon_endpoint(
    coupon_id: str,
    payload: CouponUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await update_coupon(db, coupon_id, payload)


@router.delete("/{coupon_id}")
async def delete_coupon_endpoint(
    coupon_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    await delete_coupon(db, coupon_id)
    return {"message": "Coupon deleted"}
