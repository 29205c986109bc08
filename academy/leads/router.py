from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.models import UserRole
from academy.auth.permissions import UserContext, require_roles
from academy.database import get_db
from academy.leads.models import LeadApplicationCreate, StatusUpdate
from academy.leads.service import list_applications, submit_application, update_status

router = APIRouter(tags=["Applications"])


@router.post("", status_code=201)
async def submit(payload: LeadApplicationCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Public course application form"""
    application = await submit_application(db, payload)
    return {
        "message": "Your application has been received. We will contact you shortly.",
        "application_id": application["application_id"]
    }


@router.get("/all")
async def list_all(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await list_applications(db)


@router.put("/{application_id}/status")
async def change_status(
    application_id: str,
    payload: StatusUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    return await update_status(db, application_id, payload, admin)
