from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional

from lms.assessments import service
from lms.assessments.models import TestStatus
from lms.assessments.schemas import (
    TestCreate, TestUpdate, TestDetail, TestStats,
    PublicTest, StartResponse, SubmitRequest, SubmitResult, AttemptResponse
)
from lms.core.auth import UserContext, require_admin, require_student
from lms.core.database import get_db

router = APIRouter(prefix="/tests", tags=["Tests"])
admin_router = APIRouter(prefix="/admin/tests", tags=["Test Administration"])

# ==================== STUDENT: BROWSE ====================

@router.get("", response_model=List[PublicTest])
async def list_tests(
    course_id: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    """
    Published tests, correct answers stripped
    """
    return await service.list_published_tests(db, course_id)

@router.get("/attempts/{attempt_id}", response_model=AttemptResponse)
async def get_attempt(
    attempt_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    return await service.get_attempt(db, attempt_id, student)

@router.get("/{test_id}", response_model=PublicTest)
async def get_test(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    return await service.get_published_test(db, test_id)

# ==================== STUDENT: ATTEMPT FLOW ====================

@router.post("/{test_id}/start", response_model=StartResponse, status_code=201)
async def start_test(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    """
    Begin a new attempt

    - 404 test missing or not published
    - 400 max attempts reached
    - 403 not enrolled in the test's course
    """
    return await service.start_attempt(db, test_id, student)

@router.post("/{test_id}/submit", response_model=SubmitResult)
async def submit_test(
    test_id: str,
    data: SubmitRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    """
    Grade and close an attempt

    - 400 malformed answers
    - 403 attempt owned by someone else
    - 404 test or attempt missing
    - 409 attempt already closed or timed out
    """
    answers = [a.model_dump() for a in data.answers]
    return await service.submit_attempt(db, test_id, data.attempt_id, answers, student)

@router.get("/{test_id}/attempts", response_model=List[AttemptResponse])
async def list_my_attempts(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    """Own attempts, most recent first"""
    return await service.list_attempts(db, test_id, student)

# ==================== ADMIN ====================

@admin_router.post("", response_model=TestDetail, status_code=201)
async def create_test(
    data: TestCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await service.create_test(db, data.model_dump(), admin)

@admin_router.get("", response_model=List[TestDetail])
async def list_tests_admin(
    course_id: Optional[str] = None,
    status: Optional[TestStatus] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await service.list_tests(db, course_id, status)

@admin_router.get("/{test_id}", response_model=TestDetail)
async def get_test_admin(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await service.get_test(db, test_id)

@admin_router.patch("/{test_id}", response_model=TestDetail)
async def update_test(
    test_id: str,
    data: TestUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    """
    Update a test
    Questions and passing score are locked once attempts exist (409)
    """
    return await service.update_test(db, test_id, data.model_dump(exclude_unset=True))

@admin_router.post("/{test_id}/publish", response_model=TestDetail)
async def publish_test(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await service.publish_test(db, test_id)

@admin_router.delete("/{test_id}")
async def archive_test(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    await service.archive_test(db, test_id)
    return {"status": "success", "message": "Test archived successfully"}

@admin_router.get("/{test_id}/stats", response_model=TestStats)
async def get_test_stats(
    test_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await service.get_test_stats(db, test_id)
