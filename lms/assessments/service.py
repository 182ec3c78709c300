"""
Assessment engine
Attempt lifecycle: in-progress -> completed | timed-out | abandoned
"""

import logging
from datetime import timedelta
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from lms import catalog
from lms.assessments import database, scoring
from lms.assessments.models import AttemptStatus, TestAttempt, TestDocument, TestStatus
from lms.certificates import database as certificate_db
from lms.certificates import service as certificate_service
from lms.config import ATTEMPT_START_RETRIES, SUBMIT_GRACE_SECONDS
from lms.core.auth import UserContext
from lms.core.errors import CapacityError, ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from lms.core.utils import utcnow

logger = logging.getLogger(__name__)

# Fields that change how attempts are graded; frozen once attempts exist
SCORING_FIELDS = {"questions", "passing_score"}


async def _get_test_or_404(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    test = await database.get_test(db, test_id)
    if not test:
        raise NotFoundError("Test not found", code="test_not_found")
    return test


# ==================== TIMEOUTS ====================

def attempt_deadline(attempt: dict):
    return attempt["start_time"] + timedelta(minutes=attempt["duration"])


def is_overdue(attempt: dict, now=None) -> bool:
    now = now or utcnow()
    return now > attempt_deadline(attempt) + timedelta(seconds=SUBMIT_GRACE_SECONDS)


async def apply_lazy_timeout(db: AsyncIOMotorDatabase, attempt: dict) -> dict:
    """Flip an overdue in-progress attempt to timed-out when it is read"""
    if attempt.get("status") != AttemptStatus.IN_PROGRESS.value or not is_overdue(attempt):
        return attempt

    now = utcnow()
    closed = await database.close_attempt(db, attempt["attempt_id"], {
        "status": AttemptStatus.TIMED_OUT.value,
        "end_time": now,
        "time_spent": int((now - attempt["start_time"]).total_seconds()),
    })
    if closed:
        logger.info("Attempt %s timed out", attempt["attempt_id"])
        return closed
    return await database.get_attempt(db, attempt["attempt_id"]) or attempt


# ==================== ATTEMPT LIFECYCLE ====================

async def start_attempt(db: AsyncIOMotorDatabase, test_id: str, user: UserContext) -> dict:
    """
    Create a new in-progress attempt
    Every start creates a fresh attempt; earlier in-progress ones are left to time out
    Attempt numbers come from the unique (test, student, number) index, retried on collision
    """
    test = await _get_test_or_404(db, test_id)
    if test.get("status") != TestStatus.PUBLISHED.value:
        raise NotFoundError("Test not found", code="test_not_found")

    if test.get("due_date") and utcnow() > test["due_date"]:
        raise ConflictError("This test is past its due date", code="test_past_due")

    if not user.is_admin and not await catalog.is_enrolled(db, test["course_id"], user.user_id):
        raise ForbiddenError("You are not enrolled in this course", code="not_enrolled")

    max_attempts = test.get("max_attempts")
    for _ in range(ATTEMPT_START_RETRIES):
        # Number first, count second: an insert between the two either collides or is counted
        number = await database.latest_attempt_number(db, test_id, user.user_id) + 1
        used = await database.count_counted_attempts(db, test_id, user.user_id)
        if max_attempts and used >= max_attempts:
            raise CapacityError(
                "Maximum number of attempts exceeded",
                attempts_made=used,
                max_attempts=max_attempts
            )

        attempt = TestAttempt(
            test_id=test_id,
            student_id=user.user_id,
            course_id=test["course_id"],
            attempt_number=number,
            duration=test["duration"],
            total_possible_points=test["total_points"],
        ).model_dump()

        try:
            await database.insert_attempt(db, attempt)
        except DuplicateKeyError:
            logger.debug("Attempt number %s taken for %s/%s, retrying", number, test_id, user.user_id)
            continue

        logger.info("Started attempt %s (#%s) on %s for %s", attempt["attempt_id"], number, test_id, user.user_id)
        return {
            "attempt_id": attempt["attempt_id"],
            "duration": attempt["duration"],
            "attempt_number": number,
            "start_time": attempt["start_time"],
        }

    raise ConflictError("Could not start the attempt, please retry", code="attempt_conflict")


async def submit_attempt(
    db: AsyncIOMotorDatabase,
    test_id: str,
    attempt_id: str,
    answers: List[dict],
    user: UserContext
) -> dict:
    """
    Grade and close an in-progress attempt
    A second submit is rejected, never re-scored
    Certificate issuance is best-effort and cannot fail the submit
    """
    attempt = await database.get_attempt(db, attempt_id)
    if not attempt or attempt["test_id"] != test_id:
        raise NotFoundError("Attempt not found", code="attempt_not_found")
    if attempt["student_id"] != user.user_id:
        raise ForbiddenError("This attempt belongs to another student")

    test = await _get_test_or_404(db, test_id)
    if not user.is_admin and not await catalog.is_enrolled(db, test["course_id"], user.user_id):
        raise ForbiddenError("You are not enrolled in this course", code="not_enrolled")

    if attempt["status"] != AttemptStatus.IN_PROGRESS.value:
        raise ConflictError(
            f"Attempt is already {attempt['status']}",
            code="attempt_not_in_progress",
            status=attempt["status"]
        )

    attempt = await apply_lazy_timeout(db, attempt)
    if attempt["status"] == AttemptStatus.TIMED_OUT.value:
        raise ConflictError("Time limit for this attempt has passed", code="attempt_timed_out")

    graded = scoring.grade_answers(test["questions"], answers)
    total = attempt["total_possible_points"]
    percentage_score = scoring.percentage(graded["score"], total)
    passed = scoring.is_passing(percentage_score, test["passing_score"])
    now = utcnow()

    completed = await database.close_attempt(db, attempt_id, {
        "answers": graded["answers"],
        "score": graded["score"],
        "percentage_score": percentage_score,
        "passed": passed,
        "status": AttemptStatus.COMPLETED.value,
        "end_time": now,
        "time_spent": int((now - attempt["start_time"]).total_seconds()),
    })
    if completed is None:
        raise ConflictError("Attempt was already submitted", code="attempt_not_in_progress")

    result = {
        "attempt_id": attempt_id,
        "attempt_number": completed["attempt_number"],
        "score": graded["score"],
        "max_score": total,
        "percentage_score": percentage_score,
        "passed": passed,
        "certificate_issued": False,
        "certificate_id": None,
    }

    if passed and test.get("is_certificate_test"):
        try:
            course = await catalog.get_course(db, test["course_id"])
            student = await catalog.get_student(db, user.user_id)
            certificate = await certificate_service.issue_if_eligible(db, completed, test, course, student)
            if certificate:
                await database.mark_certificate_issued(db, attempt_id, certificate["certificate_id"])
                result["certificate_issued"] = True
                result["certificate_id"] = certificate["certificate_id"]
        except Exception:
            logger.exception("Certificate issuance failed for attempt %s", attempt_id)

    return result


async def list_attempts(db: AsyncIOMotorDatabase, test_id: str, user: UserContext) -> List[dict]:
    attempts = await database.list_attempts(db, test_id, user.user_id)
    return [await apply_lazy_timeout(db, a) for a in attempts]


async def get_attempt(db: AsyncIOMotorDatabase, attempt_id: str, user: UserContext) -> dict:
    attempt = await database.get_attempt(db, attempt_id)
    if not attempt:
        raise NotFoundError("Attempt not found", code="attempt_not_found")
    if attempt["student_id"] != user.user_id and not user.is_admin:
        raise ForbiddenError("This attempt belongs to another student")
    return await apply_lazy_timeout(db, attempt)


# ==================== STUDENT TEST VIEW ====================

def strip_answers(test: dict) -> dict:
    """Remove correctness flags before a test reaches a student"""
    return {
        **test,
        "questions": [
            {
                **q,
                "options": [{"option_id": o["option_id"], "text": o["text"]} for o in q["options"]]
            }
            for q in test["questions"]
        ]
    }


async def list_published_tests(db: AsyncIOMotorDatabase, course_id: Optional[str] = None) -> List[dict]:
    tests = await database.list_tests(db, {
        "course_id": course_id,
        "status": TestStatus.PUBLISHED.value
    })
    return [strip_answers(t) for t in tests]


async def get_published_test(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    test = await _get_test_or_404(db, test_id)
    if test.get("status") != TestStatus.PUBLISHED.value:
        raise NotFoundError("Test not found", code="test_not_found")
    return strip_answers(test)


# ==================== TEST ADMINISTRATION ====================

def _validated_test(data: dict) -> dict:
    try:
        return TestDocument(**data).model_dump()
    except ValidationError as exc:
        raise ValidationFailed(
            "Invalid test definition",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        )


async def create_test(db: AsyncIOMotorDatabase, data: dict, admin: UserContext) -> dict:
    test = _validated_test({**data, "created_by": admin.user_id})
    await database.insert_test(db, test)
    logger.info("Test %s created by %s", test["test_id"], admin.user_id)
    return test


async def get_test(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    return await _get_test_or_404(db, test_id)


async def list_tests(db: AsyncIOMotorDatabase, course_id: Optional[str] = None,
                     status: Optional[TestStatus] = None) -> List[dict]:
    return await database.list_tests(db, {
        "course_id": course_id,
        "status": status.value if status else None
    })


async def update_test(db: AsyncIOMotorDatabase, test_id: str, updates: dict) -> dict:
    """
    Non-scoring metadata stays editable; questions and passing score
    are locked once any student has an attempt
    """
    test = await _get_test_or_404(db, test_id)
    if not updates:
        return test

    if updates.get("status") and test["status"] == TestStatus.ARCHIVED.value \
            and TestStatus(updates["status"]) != TestStatus.ARCHIVED:
        raise ConflictError("Archived tests cannot be reopened", code="test_archived")

    if SCORING_FIELDS & set(updates) and await database.count_attempts(db, test_id) > 0:
        raise ConflictError(
            "Questions and passing score cannot change once attempts exist",
            code="test_locked"
        )

    # Re-validate the merged definition so invariants hold after the update
    merged = _validated_test({**test, **updates})
    changed = {k: merged[k] for k in updates}
    if "questions" in updates:
        changed["total_points"] = merged["total_points"]

    return await database.update_test(db, test_id, changed)


async def publish_test(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    test = await _get_test_or_404(db, test_id)
    if test["status"] == TestStatus.ARCHIVED.value:
        raise ConflictError("Archived tests cannot be published", code="test_archived")
    return await database.set_test_status(db, test_id, TestStatus.PUBLISHED)


async def archive_test(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    """Tests are archived, never deleted"""
    await _get_test_or_404(db, test_id)
    return await database.set_test_status(db, test_id, TestStatus.ARCHIVED)


async def get_test_stats(db: AsyncIOMotorDatabase, test_id: str) -> dict:
    await _get_test_or_404(db, test_id)
    total = await database.count_attempts(db, test_id)
    summary = await database.completed_attempt_summary(db, test_id)
    completed = summary["completed"]
    return {
        "test_id": test_id,
        "total_attempts": total,
        "completed_attempts": completed,
        "average_score": round(summary["average_score"], 2),
        "pass_rate": round(summary["passed"] / completed * 100, 2) if completed else 0.0,
        "certificates_issued": await certificate_db.count_test_certificates(db, test_id),
    }
