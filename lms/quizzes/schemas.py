from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from lms.assessments.models import GradedAnswer, Question
from lms.assessments.schemas import AnswerSubmission, PublicQuestion, unique_question_answers


class QuizCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    passing_score: int = Field(60, ge=0, le=100)
    questions: List[Question] = Field(..., min_length=1)


class QuizSubmission(BaseModel):
    answers: List[AnswerSubmission] = Field(..., min_length=1)
    time_spent: Optional[int] = Field(None, ge=0)

    @field_validator("answers")
    @classmethod
    def no_duplicate_questions(cls, v):
        return unique_question_answers(v)


class PublicQuiz(BaseModel):
    quiz_id: str
    course_id: str
    title: str
    description: str = ""
    passing_score: int
    total_points: int
    questions: List[PublicQuestion]


class QuizResult(BaseModel):
    attempt_id: str
    quiz_id: str
    score: int
    max_score: int
    percentage_score: int
    passed: bool
    answers: List[GradedAnswer]
    completed_at: datetime
