from fastapi import Depends, Header
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from lms.config import JWT_SECRET_KEY, JWT_ALGORITHM
from lms.core.database import get_db
from lms.core.errors import UnauthorizedError, ForbiddenError


class UserContext:
    """
    Authenticated caller: id, role and profile
    """
    def __init__(self, user_id: str, role: str = "student", profile: Optional[dict] = None):
        self.user_id = user_id
        self.profile = profile or {}
        self.role = role
        self.username = self.profile.get("username")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin" or bool(self.profile.get("is_admin", False))


def decode_token(token: str) -> dict:
    if not JWT_SECRET_KEY:
        raise UnauthorizedError("Token verification is not configured")
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid or Expired Token")


def verify_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Unauthorized")
    return decode_token(authorization.split(" ", 1)[1])


async def get_current_user(
    payload: dict = Depends(verify_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Resolve the caller from the token's `sub`
    Role comes from users_profile, else from the token's role claim
    """
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token: missing user_id")

    profile = await db.users_profile.find_one({"user_id": user_id})
    if profile:
        role = "admin" if profile.get("is_admin") else profile.get("role", "student")
        return UserContext(user_id, role, profile)

    return UserContext(user_id, payload.get("role", "student"))


async def require_student(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Students take tests; admins may too, for previewing"""
    if user.role not in ("student", "admin") and not user.is_admin:
        raise ForbiddenError("Only students can take tests")
    return user


async def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    if not user.is_admin:
        raise ForbiddenError("Access denied. Admin privileges required.")
    return user
