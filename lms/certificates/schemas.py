from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from lms.certificates.models import CertificateStatus


class PublicCertificate(BaseModel):
    """What third parties see on verification"""
    id: str
    title: str
    student_name: str
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    test_name: Optional[str] = None
    issue_date: datetime
    expiry_date: Optional[datetime] = None
    score: int


class VerificationResult(BaseModel):
    valid: bool
    status: Optional[CertificateStatus] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    certificate: Optional[PublicCertificate] = None


class RevokeRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)
