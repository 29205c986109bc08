import logging
from typing import Optional

from fastapi import Depends, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from academy.auth.auth_utils import decode_access_token
from academy.auth.models import UserRole
from academy.database import get_db
from academy.errors import DataIntegrity, Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

USER_PROJECTION = {"_id": 0, "password_hash": 0}


class UserContext:
    """
    Authenticated user resolved from the bearer token
    Never carries the password hash
    """
    def __init__(self, user: dict):
        self.user_id = user["user_id"]
        self.name = user.get("name")
        self.email = user.get("email")
        self.role = user.get("role", UserRole.STUDENT.value)
        self.avatar = user.get("avatar")
        self.enrolled_courses = user.get("enrolled_courses", [])
        self.profile = user

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _extract_bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Request without bearer token")
        raise Unauthenticated("Not authorized, no token")
    return authorization.split(" ", 1)[1].strip()


async def _resolve_user(db: AsyncIOMotorDatabase, token: str) -> UserContext:
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token: missing subject")

    user = await db.users.find_one({"user_id": user_id}, USER_PROJECTION)
    if not user:
        logger.warning("Valid token for unknown user %s", user_id)
        raise Unauthenticated("User not found")
    return UserContext(user)


async def get_current_user(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Dependency: resolves the bearer token to a user

    Raises:
        401: Missing/invalid token or unknown user
    """
    token = _extract_bearer(authorization)
    return await _resolve_user(db, token)


async def get_optional_user(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> Optional[UserContext]:
    """Same as get_current_user, but anonymous requests resolve to None"""
    if not authorization:
        return None
    token = _extract_bearer(authorization)
    return await _resolve_user(db, token)


def require_roles(*roles: UserRole):
    """
    Dependency factory: second-stage role check after get_current_user

    Usage:
        user: UserContext = Depends(require_roles(UserRole.ADMIN))
    """
    allowed = {role.value if isinstance(role, UserRole) else role for role in roles}

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if user.role not in allowed:
            raise Forbidden(f"Role '{user.role}' is not allowed to perform this action")
        return user

    return dependency


def ensure_owner_or_admin(actor: UserContext, owner_id: Optional[str], resource: str = "resource"):
    """
    Capability check shared by every mutating operation on owned resources

    Raises:
        500: Owner reference missing (inconsistent record)
        403: Actor is neither the owner nor an Admin
    """
    if not owner_id:
        raise DataIntegrity(f"Corrupt {resource} record: owner reference missing")

    if actor.is_admin or actor.user_id == owner_id:
        return

    raise Forbidden(f"Not authorized to modify this {resource}")
