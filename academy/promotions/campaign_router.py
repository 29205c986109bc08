from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, require_roles
from academy.database import get_db
from academy.promotions.campaign_service import (
    create_campaign, delete_campaign, get_campaign, list_active_campaigns, update_campaign
)
from academy.promotions.models import CampaignCreate, CampaignUpdate

router = APIRouter(tags=["Campaigns"])

admin_only = require_roles(UserRole.ADMIN)


@router.get("")
async def list_campaigns_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(admin_only)
):
    """Active campaigns with featured course titles"""
    return await list_active_campaigns(db)


@router.post("", status_code=201)
async def create_campaign_endpoint(
    payload: CampaignCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(admin_only)
):
    return await create_campaign(db, payload)


@router.get("/{campaign_id}")
async def get_campaign_endpoint(
    campaign_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(admin_only)
):
    return await get_campaign(db, campaign_id)


@router.put("/{campaign_id}")
async def update_campaign_endpoint(
    campaign_id: str,
    payload: CampaignUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(admin_only)
):
    return await update_campaign(db, campaign_id, payload)


@router.delete("/{campaign_id}")
async def delete_campaign_endpoint(
    campaign_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(admin_only)
):
    await delete_campaign(db, campaign_id)
    return {"message": "Campaign deleted"}
