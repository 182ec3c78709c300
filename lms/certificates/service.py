"""
Certificate issuance, verification and lookup
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from lms import catalog
from lms.assessments.models import AttemptStatus
from lms.certificates import database
from lms.certificates.models import Certificate, CertificateStatus, holder_key
from lms.core.auth import UserContext
from lms.core.errors import ConflictError, ForbiddenError, NotFoundError
from lms.core.utils import random_base36, to_base36, utcnow

logger = logging.getLogger(__name__)

CERTIFICATE_ID_PATTERN = re.compile(r"^CERT-[0-9A-Z]+-[0-9A-Z]{6}$")


def generate_certificate_id(now: Optional[datetime] = None) -> str:
    """CERT-<millis base36>-<6 random base36 chars>"""
    now = now or utcnow()
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"CERT-{to_base36(millis)}-{random_base36(6)}"


def validate_certificate_id(value: str) -> bool:
    return bool(value) and CERTIFICATE_ID_PATTERN.match(value) is not None


def is_expired(certificate: dict, now: Optional[datetime] = None) -> bool:
    expiry = certificate.get("expiry_date")
    return expiry is not None and (now or utcnow()) > expiry


def expiry_from(test: dict, issued_at: datetime) -> Optional[datetime]:
    days = test.get("certificate_expiry_days")
    if days is None:
        return None
    return issued_at + timedelta(days=days)


# ==================== ISSUANCE ====================

async def issue_if_eligible(
    db: AsyncIOMotorDatabase,
    attempt: dict,
    test: dict,
    course: Optional[dict],
    student: Optional[dict]
) -> Optional[dict]:
    """
    Turn a passing, completed attempt on a certificate test into a certificate
    Re-passing refreshes the existing non-revoked certificate instead of adding one
    """
    if not attempt.get("passed") or not test.get("is_certificate_test"):
        return None
    if attempt.get("status") != AttemptStatus.COMPLETED.value:
        return None

    student_id = attempt["student_id"]
    existing = await database.find_current_certificate(db, student_id, test["test_id"])
    if existing:
        return await _refresh_certificate(db, existing, attempt, test)

    now = utcnow()
    certificate = Certificate(
        certificate_id=generate_certificate_id(now),
        student_id=student_id,
        course_id=attempt["course_id"],
        test_id=test["test_id"],
        test_attempt_id=attempt["attempt_id"],
        holder_key=holder_key(student_id, test["test_id"]),
        title=f"Certificate of Completion: {test['title']}",
        student_name=catalog.display_name(student),
        course_name=(course or {}).get("title"),
        course_code=(course or {}).get("code"),
        test_title=test["title"],
        score=attempt["percentage_score"],
        passing_score=test["passing_score"],
        attempt_number=attempt["attempt_number"],
        total_attempts=attempt["attempt_number"],
        template_used=test.get("certificate_template", "default"),
        issue_date=now,
        completion_date=attempt.get("end_time") or now,
        expiry_date=expiry_from(test, now),
    )
    doc = certificate.model_dump()

    try:
        await database.insert_certificate(db, doc)
    except DuplicateKeyError:
        # a concurrent passing submit got there first
        existing = await database.find_current_certificate(db, student_id, test["test_id"])
        if existing is None:
            raise
        return await _refresh_certificate(db, existing, attempt, test)

    logger.info("Issued certificate %s to %s for test %s", doc["certificate_id"], student_id, test["test_id"])
    return doc


async def _refresh_certificate(db: AsyncIOMotorDatabase, existing: dict, attempt: dict, test: dict) -> dict:
    """Only write when score or status actually change"""
    score = attempt["percentage_score"]
    if existing.get("score") == score and existing.get("status") == CertificateStatus.ACTIVE.value \
            and not is_expired(existing):
        return existing

    now = utcnow()
    updated = await database.update_certificate(db, existing["certificate_id"], {
        "score": score,
        "status": CertificateStatus.ACTIVE.value,
        "issue_date": now,
        "completion_date": attempt.get("end_time") or now,
        "expiry_date": expiry_from(test, now),
        "test_attempt_id": attempt["attempt_id"],
        "attempt_number": attempt["attempt_number"],
        "total_attempts": max(existing.get("total_attempts", 1), attempt["attempt_number"]),
    })
    if updated is None:
        # revoked between lookup and update
        raise ConflictError("Certificate was revoked", code="certificate_revoked")
    logger.info("Re-issued certificate %s (score %s)", updated["certificate_id"], score)
    return updated


# ==================== VERIFICATION ====================

def public_projection(certificate: dict) -> dict:
    return {
        "id": certificate["certificate_id"],
        "title": certificate["title"],
        "student_name": certificate.get("student_name") or "Student",
        "course_name": certificate.get("course_name"),
        "course_code": certificate.get("course_code"),
        "test_name": certificate.get("test_title"),
        "issue_date": certificate["issue_date"],
        "expiry_date": certificate.get("expiry_date"),
        "score": certificate["score"],
    }


async def verify_certificate(db: AsyncIOMotorDatabase, certificate_id: str) -> dict:
    """
    Public verification by certificate id
    Expiry is evaluated here, not by a background sweep
    """
    certificate = await database.get_certificate(db, certificate_id)
    if not certificate:
        return {"valid": False, "reason": "not_found", "message": "Certificate not found"}

    status = certificate.get("status")
    if status == CertificateStatus.ACTIVE.value and is_expired(certificate):
        await database.mark_expired(db, {"certificate_id": certificate_id})
        status = CertificateStatus.EXPIRED.value

    if status != CertificateStatus.ACTIVE.value:
        return {
            "valid": False,
            "status": status,
            "reason": status,
            "message": f"Certificate is {status}"
        }

    return {
        "valid": True,
        "status": status,
        "message": "Certificate is valid",
        "certificate": public_projection(certificate)
    }


# ==================== STUDENT VIEW ====================

async def _enrich(db: AsyncIOMotorDatabase, certificates: List[dict]) -> List[dict]:
    courses, tests = {}, {}
    enriched = []
    for cert in certificates:
        course_id, test_id = cert.get("course_id"), cert.get("test_id")
        if course_id not in courses:
            courses[course_id] = await catalog.get_course(db, course_id)
        if test_id not in tests:
            tests[test_id] = await db.tests.find_one({"test_id": test_id}, {"_id": 0})
        course, test = courses[course_id], tests[test_id]
        enriched.append({
            **cert,
            "course": {"course_id": course_id, "title": course.get("title"), "code": course.get("code")} if course else None,
            "test": {"test_id": test_id, "title": test.get("title"), "description": test.get("description")} if test else None,
        })
    return enriched


async def list_for_student(db: AsyncIOMotorDatabase, student_id: str) -> List[dict]:
    """
    Non-revoked certificates, most recent first
    Enrichment failures fall back to the plain records
    """
    await database.mark_expired(db, {"student_id": student_id})
    certificates = await database.list_student_certificates(db, student_id)
    try:
        return await _enrich(db, certificates)
    except Exception:
        logger.warning("Certificate enrichment failed for %s, returning plain records", student_id, exc_info=True)
        return certificates


async def get_for_download(db: AsyncIOMotorDatabase, certificate_id: str, user: UserContext) -> dict:
    certificate = await database.get_certificate(db, certificate_id)
    if not certificate:
        raise NotFoundError("Certificate not found", code="certificate_not_found")
    if certificate["student_id"] != user.user_id and not user.is_admin:
        raise ForbiddenError("Unauthorized access to this certificate")
    if certificate.get("status") == CertificateStatus.REVOKED.value:
        raise ConflictError("Certificate has been revoked", code="certificate_revoked")

    return await database.record_download(db, certificate_id) or certificate


# ==================== ADMIN ====================

async def revoke(db: AsyncIOMotorDatabase, certificate_id: str, reason: str, admin: UserContext) -> dict:
    certificate = await database.get_certificate(db, certificate_id)
    if not certificate:
        raise NotFoundError("Certificate not found", code="certificate_not_found")

    revoked = await database.revoke_certificate(db, certificate_id, reason, admin.user_id)
    if revoked is None:
        raise ConflictError("Certificate is already revoked", code="certificate_revoked")

    logger.info("Certificate %s revoked by %s", certificate_id, admin.user_id)
    return revoked


async def list_all(db: AsyncIOMotorDatabase, student_id: Optional[str] = None, test_id: Optional[str] = None,
                   status: Optional[CertificateStatus] = None) -> List[dict]:
    filters = {
        "student_id": student_id,
        "test_id": test_id,
        "status": status.value if status else None,
    }
    return await database.list_certificates(db, filters)
