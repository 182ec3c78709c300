from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from typing import List, Optional

from lms.assessments.models import AttemptStatus, TestStatus
from lms.core.database import without_id
from lms.core.utils import utcnow

# ==================== TEST CRUD ====================

async def insert_test(db: AsyncIOMotorDatabase, test: dict) -> str:
    await db.tests.insert_one(dict(test))
    return test["test_id"]

async def get_test(db: AsyncIOMotorDatabase, test_id: str) -> Optional[dict]:
    """Get test by ID"""
    return await db.tests.find_one({"test_id": test_id}, {"_id": 0})

async def list_tests(db: AsyncIOMotorDatabase, filters: dict, skip: int = 0, limit: int = 50) -> List[dict]:
    """List tests with filters, newest first"""
    query = {}
    if filters.get("course_id"):
        query["course_id"] = filters["course_id"]
    if filters.get("status"):
        query["status"] = filters["status"]

    cursor = db.tests.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)

async def update_test(db: AsyncIOMotorDatabase, test_id: str, updates: dict) -> Optional[dict]:
    updates["updated_at"] = utcnow()
    return without_id(await db.tests.find_one_and_update(
        {"test_id": test_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    ))

async def set_test_status(db: AsyncIOMotorDatabase, test_id: str, status: TestStatus) -> Optional[dict]:
    return await update_test(db, test_id, {"status": status.value})

# ==================== ATTEMPT CRUD ====================

async def count_attempts(db: AsyncIOMotorDatabase, test_id: str, student_id: Optional[str] = None) -> int:
    """All attempts for a test, optionally for one student"""
    query = {"test_id": test_id}
    if student_id:
        query["student_id"] = student_id
    return await db.test_attempts.count_documents(query)

async def count_counted_attempts(db: AsyncIOMotorDatabase, test_id: str, student_id: str) -> int:
    """Attempts that count against max_attempts: everything except abandoned"""
    return await db.test_attempts.count_documents({
        "test_id": test_id,
        "student_id": student_id,
        "status": {"$ne": AttemptStatus.ABANDONED.value}
    })

async def latest_attempt_number(db: AsyncIOMotorDatabase, test_id: str, student_id: str) -> int:
    latest = await db.test_attempts.find_one(
        {"test_id": test_id, "student_id": student_id},
        sort=[("attempt_number", -1)]
    )
    return latest["attempt_number"] if latest else 0

async def insert_attempt(db: AsyncIOMotorDatabase, attempt: dict) -> str:
    """Raises DuplicateKeyError when the attempt number is already taken"""
    await db.test_attempts.insert_one(dict(attempt))
    return attempt["attempt_id"]

async def get_attempt(db: AsyncIOMotorDatabase, attempt_id: str) -> Optional[dict]:
    return await db.test_attempts.find_one({"attempt_id": attempt_id}, {"_id": 0})

async def list_attempts(db: AsyncIOMotorDatabase, test_id: str, student_id: str) -> List[dict]:
    """Most recent first"""
    cursor = db.test_attempts.find(
        {"test_id": test_id, "student_id": student_id},
        {"_id": 0}
    ).sort("attempt_number", -1)
    return await cursor.to_list(length=None)

async def close_attempt(db: AsyncIOMotorDatabase, attempt_id: str, updates: dict) -> Optional[dict]:
    """
    Move an in-progress attempt to a terminal state
    Returns None when the attempt is no longer in progress
    """
    return without_id(await db.test_attempts.find_one_and_update(
        {"attempt_id": attempt_id, "status": AttemptStatus.IN_PROGRESS.value},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    ))

async def mark_certificate_issued(db: AsyncIOMotorDatabase, attempt_id: str, certificate_id: str) -> bool:
    result = await db.test_attempts.update_one(
        {"attempt_id": attempt_id},
        {"$set": {"certificate_issued": True, "certificate_id": certificate_id}}
    )
    return result.modified_count > 0

async def completed_attempt_summary(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    pipeline = [
        {"$match": {"test_id": test_id, "status": AttemptStatus.COMPLETED.value}},
        {"$group": {
            "_id": None,
            "completed": {"$sum": 1},
            "average_score": {"$avg": "$percentage_score"}
        }}
    ]
    results = await db.test_attempts.aggregate(pipeline).to_list(None)
    passed = await db.test_attempts.count_documents({
        "test_id": test_id,
        "status": AttemptStatus.COMPLETED.value,
        "passed": True
    })
    if not results:
        return {"completed": 0, "average_score": 0.0, "passed": passed}
    return {
        "completed": results[0]["completed"],
        "average_score": results[0]["average_score"] or 0.0,
        "passed": passed
    }
