"""
Course catalog and student directory lookups
Black-box collaborators for the assessment flow
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})


async def is_enrolled(db: AsyncIOMotorDatabase, course_id: str, student_id: str) -> bool:
    enrollment = await db.course_enrollments.find_one({
        "course_id": course_id,
        "user_id": student_id,
        "is_active": True
    })
    return enrollment is not None


async def get_student(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.users_profile.find_one({"user_id": user_id})


def display_name(profile: Optional[dict]) -> str:
    if not profile:
        return "Student"
    full = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return full or profile.get("username") or "Student"
