from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lms.assessments.models import GradedAnswer, Question, TestStatus
from lms.core.utils import generate_id, utcnow


class Quiz(BaseModel):
    """
    Practice question set bound to a course
    Graded with the same scoring as tests, never issues certificates
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    quiz_id: str = Field(default_factory=lambda: generate_id("QUIZ"))
    course_id: str
    title: str
    description: str = ""
    passing_score: int = Field(60, ge=0, le=100)
    questions: List[Question] = Field(..., min_length=1)
    total_points: int = 0
    status: TestStatus = TestStatus.PUBLISHED
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def reconcile_total_points(self):
        if len({q.question_id for q in self.questions}) != len(self.questions):
            raise ValueError("Question ids must be unique within a quiz")
        self.total_points = sum(q.points for q in self.questions)
        return self


class QuizAttempt(BaseModel):
    attempt_id: str = Field(default_factory=lambda: generate_id("QATT"))
    quiz_id: str
    student_id: str
    course_id: str
    answers: List[GradedAnswer] = []
    score: int = 0
    max_score: int = 0
    percentage_score: int = 0
    passed: bool = False
    time_spent: Optional[int] = None
    completed_at: datetime = Field(default_factory=utcnow)
