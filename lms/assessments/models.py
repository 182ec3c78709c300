from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lms.core.utils import generate_id, utcnow

# ==================== ENUMS ====================

class TestStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"

class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    TIMED_OUT = "timed-out"
    ABANDONED = "abandoned"

# ==================== QUESTION MODELS ====================

class Option(BaseModel):
    option_id: str = Field(default_factory=lambda: generate_id("OPT"))
    text: str = Field(..., min_length=1)
    is_correct: bool = False

class Question(BaseModel):
    """
    Embedded in a test or quiz
    multiple-choice: correct when the selected set equals the correct set
    true-false: exactly one correct option, one selection expected
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    question_id: str = Field(default_factory=lambda: generate_id("Q"))
    text: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: List[Option] = Field(..., min_length=1)
    points: int = Field(1, ge=1)

    @model_validator(mode="after")
    def check_options(self):
        correct = [o for o in self.options if o.is_correct]
        if not correct:
            raise ValueError("At least one option must be marked as correct")
        if len({o.option_id for o in self.options}) != len(self.options):
            raise ValueError("Option ids must be unique within a question")
        if self.type == QuestionType.TRUE_FALSE:
            if len(self.options) != 2:
                raise ValueError("True/false questions need exactly two options")
            if len(correct) != 1:
                raise ValueError("True/false questions need exactly one correct option")
        return self

# ==================== DATABASE MODELS ====================

class TestDocument(BaseModel):
    """
    Graded assessment bound to one course
    total_points is always the sum of question points
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    test_id: str = Field(default_factory=lambda: generate_id("TEST"))
    course_id: str
    title: str
    description: str = ""
    passing_score: int = Field(70, ge=0, le=100)
    duration: int = Field(60, ge=1)  # minutes
    total_points: int = 0
    due_date: Optional[datetime] = None
    max_attempts: int = Field(5, ge=1)
    questions: List[Question]
    is_certificate_test: bool = True
    certificate_template: str = "default"
    certificate_expiry_days: Optional[int] = Field(None, ge=0)  # None = never expires
    status: TestStatus = TestStatus.DRAFT
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def reconcile_total_points(self):
        if not self.questions:
            raise ValueError("At least one question is required")
        if len({q.question_id for q in self.questions}) != len(self.questions):
            raise ValueError("Question ids must be unique within a test")
        self.total_points = sum(q.points for q in self.questions)
        return self

class GradedAnswer(BaseModel):
    """Computed once at submission and never mutated"""
    question_id: str
    selected_options: List[str] = []
    text_answer: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0

class TestAttempt(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    attempt_id: str = Field(default_factory=lambda: generate_id("ATT"))
    test_id: str
    student_id: str
    course_id: str
    attempt_number: int = Field(..., ge=1)
    duration: int  # minutes allowed, snapshot of the test at start
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    time_spent: int = 0  # seconds
    answers: List[GradedAnswer] = []
    score: int = 0
    total_possible_points: int
    percentage_score: int = 0
    passed: bool = False
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    certificate_issued: bool = False
    certificate_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
