from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from lms.core.utils import utcnow


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Certificate(BaseModel):
    """
    Proof of passing a certificate-eligible test
    At most one non-revoked certificate per (student, test), enforced by holder_key
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    certificate_id: str
    student_id: str
    course_id: str
    test_id: str
    test_attempt_id: Optional[str] = None
    holder_key: Optional[str] = None  # "<student_id>:<test_id>", unset on revoke
    title: str
    student_name: str = "Student"
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    test_title: Optional[str] = None
    score: int = Field(..., ge=0, le=100)
    passing_score: int = Field(..., ge=0, le=100)
    attempt_number: int = 1
    total_attempts: int = 1
    template_used: str = "default"
    issue_date: datetime = Field(default_factory=utcnow)
    completion_date: datetime = Field(default_factory=utcnow)
    expiry_date: Optional[datetime] = None
    status: CertificateStatus = CertificateStatus.ACTIVE
    download_count: int = 0
    last_downloaded: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    revoked_by: Optional[str] = None


def holder_key(student_id: str, test_id: str) -> str:
    return f"{student_id}:{test_id}"
