from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional

from lms.core.auth import UserContext, require_admin, require_student
from lms.core.database import get_db
from lms.quizzes import service
from lms.quizzes.schemas import PublicQuiz, QuizCreate, QuizResult, QuizSubmission

router = APIRouter(prefix="/quizzes", tags=["Quizzes"])
admin_router = APIRouter(prefix="/admin/quizzes", tags=["Quiz Administration"])


@router.get("", response_model=List[PublicQuiz])
async def list_quizzes(
    course_id: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    return await service.list_quizzes(db, course_id)

@router.get("/attempts", response_model=List[QuizResult])
async def list_my_quiz_attempts(
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    return await service.list_my_attempts(db, student)

@router.post("/{quiz_id}/attempts", response_model=QuizResult, status_code=201)
async def submit_quiz(
    quiz_id: str,
    data: QuizSubmission,
    db: AsyncIOMotorDatabase = Depends(get_db),
    student: UserContext = Depends(require_student)
):
    answers = [a.model_dump() for a in data.answers]
    return await service.submit_quiz(db, quiz_id, answers, student, data.time_spent)


@admin_router.post("", status_code=201)
async def create_quiz(
    data: QuizCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    quiz = await service.create_quiz(db, data.model_dump(), admin)
    return {"status": "success", "quiz_id": quiz["quiz_id"], "total_points": quiz["total_points"]}

@admin_router.get("")
async def list_quizzes_admin(
    course_id: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
) -> List[dict]:
    return await service.list_quizzes(db, course_id, published_only=False)
