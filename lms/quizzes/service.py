import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from lms import catalog
from lms.assessments import scoring
from lms.assessments.models import TestStatus
from lms.assessments.service import strip_answers
from lms.core.auth import UserContext
from lms.core.errors import ForbiddenError, NotFoundError
from lms.quizzes.models import Quiz, QuizAttempt

logger = logging.getLogger(__name__)


async def create_quiz(db: AsyncIOMotorDatabase, data: dict, admin: UserContext) -> dict:
    quiz = Quiz(**data, created_by=admin.user_id).model_dump()
    await db.quizzes.insert_one(dict(quiz))
    return quiz


async def list_quizzes(db: AsyncIOMotorDatabase, course_id: Optional[str] = None,
                       published_only: bool = True) -> List[dict]:
    query = {}
    if course_id:
        query["course_id"] = course_id
    if published_only:
        query["status"] = TestStatus.PUBLISHED.value
    quizzes = await db.quizzes.find(query, {"_id": 0}).sort("created_at", -1).to_list(length=None)
    return [strip_answers(q) for q in quizzes] if published_only else quizzes


async def submit_quiz(db: AsyncIOMotorDatabase, quiz_id: str, answers: List[dict],
                      user: UserContext, time_spent: Optional[int] = None) -> dict:
    """
    One-shot graded practice attempt
    """
    quiz = await db.quizzes.find_one({"quiz_id": quiz_id, "status": TestStatus.PUBLISHED.value}, {"_id": 0})
    if not quiz:
        raise NotFoundError("Quiz not found", code="quiz_not_found")

    if not user.is_admin and not await catalog.is_enrolled(db, quiz["course_id"], user.user_id):
        raise ForbiddenError("You are not enrolled in this course", code="not_enrolled")

    graded = scoring.grade_answers(quiz["questions"], answers)
    percentage_score = scoring.percentage(graded["score"], quiz["total_points"])

    attempt = QuizAttempt(
        quiz_id=quiz_id,
        student_id=user.user_id,
        course_id=quiz["course_id"],
        answers=graded["answers"],
        score=graded["score"],
        max_score=quiz["total_points"],
        percentage_score=percentage_score,
        passed=scoring.is_passing(percentage_score, quiz["passing_score"]),
        time_spent=time_spent,
    ).model_dump()
    await db.quiz_attempts.insert_one(dict(attempt))

    logger.info("Quiz %s attempt by %s scored %s%%", quiz_id, user.user_id, percentage_score)
    return attempt


async def list_my_attempts(db: AsyncIOMotorDatabase, user: UserContext) -> List[dict]:
    cursor = db.quiz_attempts.find({"student_id": user.user_id}, {"_id": 0}).sort("completed_at", -1)
    return await cursor.to_list(length=None)
