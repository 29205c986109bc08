from fastapi import APIRouter, Depends, File, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.auth_utils import create_access_token
from academy.auth.models import LoginRequest, RegisterRequest, UserRole
from academy.auth.permissions import UserContext, get_current_user, require_roles
from academy.auth.service import (
    authenticate, delete_user, format_user, list_users, register_user, replace_avatar
)
from academy.database import get_db
from academy.errors import ValidationError
from academy.uploads import discard_upload, save_upload

router = APIRouter(tags=["Auth"])
users_router = APIRouter(tags=["Users"])


# ==================== AUTH ====================

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await register_user(db, data)
    return {
        "user": format_user(user),
        "token": create_access_token(user["user_id"], user["role"])
    }


@router.post("/login")
async def login(data: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await authenticate(db, data.email, data.password)
    return {
        "user": format_user(user),
        "token": create_access_token(user["user_id"], user["role"])
    }


@router.get("/me")
async def me(user: UserContext = Depends(get_current_user)):
    return format_user(user.profile)


@router.put("/profile/avatar")
async def update_avatar(
    avatar: UploadFile = File(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Replace the profile picture; the previous file is discarded"""
    if avatar is None:
        raise ValidationError("Please upload an image file")

    avatar_path = await save_upload(avatar, "avatar")
    try:
        previous = await replace_avatar(db, user.user_id, avatar_path)
    except Exception:
        discard_upload(avatar_path)
        raise

    discard_upload(previous)
    return {"message": "Profile picture updated", "avatar": avatar_path}


# ==================== USERS (ADMIN) ====================

@users_router.get("")
async def list_users_endpoint(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    users = await list_users(db)
    return {"users": users, "count": len(users)}


@users_router.delete("/{user_id}")
async def delete_user_endpoint(
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_roles(UserRole.ADMIN))
):
    await delete_user(db, user_id)
    return {"success": True, "message": "User deleted"}
