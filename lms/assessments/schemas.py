from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from lms.assessments.models import AttemptStatus, GradedAnswer, Question, QuestionType, TestStatus

# ==================== REQUEST SCHEMAS ====================

class TestCreate(BaseModel):
    """
    Admin creates a test
    total_points is derived from the questions
    """
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    passing_score: int = Field(70, ge=0, le=100)
    duration: int = Field(60, ge=1)
    due_date: Optional[datetime] = None
    max_attempts: int = Field(5, ge=1)
    questions: List[Question] = Field(..., min_length=1)
    is_certificate_test: bool = True
    certificate_template: str = "default"
    certificate_expiry_days: Optional[int] = Field(None, ge=0)
    status: TestStatus = TestStatus.DRAFT

class TestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    duration: Optional[int] = Field(None, ge=1)
    due_date: Optional[datetime] = None
    max_attempts: Optional[int] = Field(None, ge=1)
    questions: Optional[List[Question]] = Field(None, min_length=1)
    is_certificate_test: Optional[bool] = None
    certificate_template: Optional[str] = None
    certificate_expiry_days: Optional[int] = Field(None, ge=0)
    status: Optional[TestStatus] = None

class AnswerSubmission(BaseModel):
    question_id: str = Field(..., min_length=1)
    selected_options: List[str] = []
    text_answer: Optional[str] = None

def unique_question_answers(answers: List[AnswerSubmission]) -> List[AnswerSubmission]:
    seen = set()
    for answer in answers:
        if answer.question_id in seen:
            raise ValueError(f"Duplicate answer for question {answer.question_id}")
        seen.add(answer.question_id)
    return answers

class SubmitRequest(BaseModel):
    """
    Student submits answers for an in-progress attempt
    One answer per question at most
    """
    attempt_id: str = Field(..., min_length=1)
    answers: List[AnswerSubmission] = Field(..., min_length=1)

    @field_validator("answers")
    @classmethod
    def no_duplicate_questions(cls, v):
        return unique_question_answers(v)

# ==================== RESPONSE SCHEMAS ====================

class StartResponse(BaseModel):
    attempt_id: str
    duration: int
    attempt_number: int
    start_time: datetime

class SubmitResult(BaseModel):
    attempt_id: str
    attempt_number: int
    score: int
    max_score: int
    percentage_score: int
    passed: bool
    certificate_issued: bool = False
    certificate_id: Optional[str] = None

class AttemptResponse(BaseModel):
    attempt_id: str
    test_id: str
    course_id: str
    attempt_number: int
    status: AttemptStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    time_spent: int = 0
    duration: int
    answers: List[GradedAnswer] = []
    score: int = 0
    total_possible_points: int
    percentage_score: int = 0
    passed: bool = False
    certificate_issued: bool = False
    certificate_id: Optional[str] = None

class PublicOption(BaseModel):
    """Option as students see it: no correctness flag"""
    option_id: str
    text: str

class PublicQuestion(BaseModel):
    question_id: str
    text: str
    type: QuestionType
    options: List[PublicOption]
    points: int

class PublicTest(BaseModel):
    test_id: str
    course_id: str
    title: str
    description: str = ""
    passing_score: int
    duration: int
    total_points: int
    due_date: Optional[datetime] = None
    max_attempts: int
    is_certificate_test: bool
    questions: List[PublicQuestion]

class TestDetail(BaseModel):
    """Full definition for admins, answers included"""
    test_id: str
    course_id: str
    title: str
    description: str = ""
    passing_score: int
    duration: int
    total_points: int
    due_date: Optional[datetime] = None
    max_attempts: int
    questions: List[Question]
    is_certificate_test: bool
    certificate_template: str = "default"
    certificate_expiry_days: Optional[int] = None
    status: TestStatus
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class TestStats(BaseModel):
    test_id: str
    total_attempts: int
    completed_attempts: int
    average_score: float
    pass_rate: float
    certificates_issued: int
