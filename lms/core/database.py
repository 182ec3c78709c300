from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import logging
from typing import Optional

from lms.config import MONGO_URL, MONGO_DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


def without_id(doc: Optional[dict]) -> Optional[dict]:
    """Drop the internal Mongo _id so documents can be returned as JSON"""
    if doc is not None:
        doc.pop("_id", None)
    return doc


# ==================== DATABASE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Create MongoDB indexes
    Called during application startup
    """
    # Tests
    await database.tests.create_index("test_id", unique=True)
    await database.tests.create_index([("course_id", 1), ("status", 1)])
    await database.tests.create_index([("is_certificate_test", 1), ("status", 1)])

    # Test attempts: attempt numbers never repeat per (test, student)
    await database.test_attempts.create_index("attempt_id", unique=True)
    await database.test_attempts.create_index(
        [("test_id", 1), ("student_id", 1), ("attempt_number", 1)],
        unique=True
    )
    await database.test_attempts.create_index([("student_id", 1), ("status", 1)])

    # Certificates: holder_key is only set while a certificate is not revoked
    await database.certificates.create_index("certificate_id", unique=True)
    await database.certificates.create_index("holder_key", unique=True, sparse=True)
    await database.certificates.create_index([("student_id", 1), ("issue_date", -1)])
    await database.certificates.create_index("status")

    # Quizzes
    await database.quizzes.create_index("quiz_id", unique=True)
    await database.quiz_attempts.create_index("attempt_id", unique=True)
    await database.quiz_attempts.create_index([("student_id", 1), ("completed_at", -1)])

    logger.info("Assessment indexes created")
