from datetime import timedelta

import pytest

from lms import catalog
from lms.assessments import service as assessment_service
from lms.certificates import database as certificate_db
from lms.certificates import service
from lms.certificates.models import CertificateStatus
from lms.core.errors import ConflictError, ForbiddenError, NotFoundError
from lms.core.utils import utcnow
from tests.factories import (
    ALL_CORRECT, OTHER_STUDENT_ID, STUDENT_ID,
    admin, sample_test_payload, student
)


async def create_test(db, **overrides):
    return await assessment_service.create_test(db, sample_test_payload(**overrides), admin())


async def pass_test(db, test, user=None):
    user = user or student()
    started = await assessment_service.start_attempt(db, test["test_id"], user)
    return await assessment_service.submit_attempt(db, test["test_id"], started["attempt_id"], ALL_CORRECT, user)


def passing_attempt(test, percentage_score=92, attempt_number=1):
    return {
        "attempt_id": f"ATT_{attempt_number}",
        "test_id": test["test_id"],
        "student_id": STUDENT_ID,
        "course_id": test["course_id"],
        "attempt_number": attempt_number,
        "percentage_score": percentage_score,
        "passed": True,
        "status": "completed",
        "end_time": utcnow(),
    }


async def issue(db, test, attempt):
    course = await catalog.get_course(db, test["course_id"])
    profile = await catalog.get_student(db, attempt["student_id"])
    return await service.issue_if_eligible(db, attempt, test, course, profile)


# ==================== IDS ====================

@pytest.mark.parametrize("value", ["", "CERT-", "cert-abc-123456", "CERT-ABC-12345", "TEST_ABC"])
def test_invalid_certificate_ids(value):
    assert not service.validate_certificate_id(value)


# ==================== ISSUANCE ====================

@pytest.mark.asyncio
async def test_issue_snapshots_student_course_and_score(db):
    test = await create_test(db)

    certificate = await issue(db, test, passing_attempt(test))

    assert certificate["student_name"] == "Alice Moreau"
    assert certificate["course_name"] == "Intro to the Web"
    assert certificate["course_code"] == "WEB101"
    assert certificate["test_title"] == test["title"]
    assert certificate["score"] == 92
    assert certificate["passing_score"] == 70
    assert certificate["status"] == "active"
    assert certificate["expiry_date"] is None
    assert certificate["holder_key"] == f"{STUDENT_ID}:{test['test_id']}"


@pytest.mark.asyncio
async def test_ineligible_attempts_issue_nothing(db):
    test = await create_test(db)
    failing = {**passing_attempt(test), "passed": False}
    unfinished = {**passing_attempt(test), "status": "in-progress"}
    practice = await create_test(db, is_certificate_test=False)

    assert await issue(db, test, failing) is None
    assert await issue(db, test, unfinished) is None
    assert await issue(db, practice, passing_attempt(practice)) is None
    assert await db.certificates.count_documents({}) == 0


@pytest.mark.asyncio
async def test_expiry_days_set_expiry_date(db):
    test = await create_test(db, certificate_expiry_days=365)

    certificate = await issue(db, test, passing_attempt(test))

    assert certificate["expiry_date"] - certificate["issue_date"] == timedelta(days=365)


@pytest.mark.asyncio
async def test_repass_refreshes_score_in_place(db):
    test = await create_test(db)
    first = await issue(db, test, passing_attempt(test, 80, 1))

    second = await issue(db, test, passing_attempt(test, 95, 2))

    assert second["certificate_id"] == first["certificate_id"]
    assert second["score"] == 95
    assert second["total_attempts"] == 2
    assert await db.certificates.count_documents({"student_id": STUDENT_ID}) == 1


@pytest.mark.asyncio
async def test_repass_with_same_score_writes_nothing(db):
    test = await create_test(db)
    first = await issue(db, test, passing_attempt(test, 80, 1))

    again = await issue(db, test, passing_attempt(test, 80, 2))

    assert again["certificate_id"] == first["certificate_id"]
    stored = await certificate_db.get_certificate(db, first["certificate_id"])
    assert stored["attempt_number"] == 1
    assert stored["test_attempt_id"] == "ATT_1"


@pytest.mark.asyncio
async def test_repass_reactivates_expired_certificate(db):
    test = await create_test(db, certificate_expiry_days=30)
    first = await issue(db, test, passing_attempt(test, 80, 1))
    await db.certificates.update_one(
        {"certificate_id": first["certificate_id"]},
        {"$set": {"status": "expired", "expiry_date": utcnow() - timedelta(days=1)}}
    )

    renewed = await issue(db, test, passing_attempt(test, 80, 2))

    assert renewed["certificate_id"] == first["certificate_id"]
    assert renewed["status"] == "active"
    assert renewed["expiry_date"] > utcnow()


@pytest.mark.asyncio
async def test_concurrent_issue_falls_back_to_refresh(db, monkeypatch):
    test = await create_test(db)
    first = await issue(db, test, passing_attempt(test, 80, 1))

    real_find = certificate_db.find_current_certificate
    calls = []

    async def missing_then_real(*args):
        calls.append(args)
        if len(calls) == 1:
            return None  # the other submit has not committed yet
        return await real_find(*args)

    monkeypatch.setattr(certificate_db, "find_current_certificate", missing_then_real)

    second = await issue(db, test, passing_attempt(test, 90, 2))

    assert second["certificate_id"] == first["certificate_id"]
    assert second["score"] == 90
    assert await db.certificates.count_documents({"student_id": STUDENT_ID}) == 1


@pytest.mark.asyncio
async def test_revoked_certificate_is_replaced_on_next_pass(db):
    test = await create_test(db)
    first = await pass_test(db, test)
    await service.revoke(db, first["certificate_id"], "Academic misconduct", admin())

    second = await pass_test(db, test)

    assert second["certificate_issued"] is True
    assert second["certificate_id"] != first["certificate_id"]
    old = await certificate_db.get_certificate(db, first["certificate_id"])
    assert old["status"] == "revoked"
    assert "holder_key" not in old


# ==================== VERIFICATION ====================

@pytest.mark.asyncio
async def test_verify_unknown_certificate(db):
    result = await service.verify_certificate(db, "CERT-NOPE-000000")

    assert result["valid"] is False
    assert result["reason"] == "not_found"


@pytest.mark.asyncio
async def test_verify_valid_certificate_exposes_public_fields_only(db):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test, 92))

    result = await service.verify_certificate(db, certificate["certificate_id"])

    assert result["valid"] is True
    assert result["status"] == "active"
    public = result["certificate"]
    assert public["id"] == certificate["certificate_id"]
    assert public["student_name"] == "Alice Moreau"
    assert public["course_name"] == "Intro to the Web"
    assert public["test_name"] == test["title"]
    assert public["score"] == 92
    for private in ("student_id", "test_attempt_id", "holder_key", "course_id"):
        assert private not in public


@pytest.mark.asyncio
async def test_verify_revoked_certificate(db):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test))
    await service.revoke(db, certificate["certificate_id"], "Issued in error", admin())

    result = await service.verify_certificate(db, certificate["certificate_id"])

    assert result["valid"] is False
    assert result["status"] == "revoked"
    assert "certificate" not in result


@pytest.mark.asyncio
async def test_verify_flips_expired_certificate(db):
    test = await create_test(db, certificate_expiry_days=30)
    certificate = await issue(db, test, passing_attempt(test))
    await db.certificates.update_one(
        {"certificate_id": certificate["certificate_id"]},
        {"$set": {"expiry_date": utcnow() - timedelta(minutes=1)}}
    )

    result = await service.verify_certificate(db, certificate["certificate_id"])

    assert result["valid"] is False
    assert result["status"] == "expired"
    stored = await certificate_db.get_certificate(db, certificate["certificate_id"])
    assert stored["status"] == "expired"


# ==================== STUDENT VIEW ====================

@pytest.mark.asyncio
async def test_list_is_enriched_and_most_recent_first(db):
    first = await create_test(db, title="HTML Basics")
    second = await create_test(db, title="CSS Layout")
    older = await issue(db, first, passing_attempt(first))
    newer = await issue(db, second, passing_attempt(second))
    await db.certificates.update_one(
        {"certificate_id": older["certificate_id"]},
        {"$set": {"issue_date": utcnow() - timedelta(days=2)}}
    )

    certificates = await service.list_for_student(db, STUDENT_ID)

    assert [c["certificate_id"] for c in certificates] == [newer["certificate_id"], older["certificate_id"]]
    assert certificates[0]["course"]["code"] == "WEB101"
    assert certificates[0]["test"]["title"] == "CSS Layout"


@pytest.mark.asyncio
async def test_list_hides_revoked(db):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test))
    await service.revoke(db, certificate["certificate_id"], "Issued in error", admin())

    assert await service.list_for_student(db, STUDENT_ID) == []


@pytest.mark.asyncio
async def test_list_falls_back_when_enrichment_fails(db, monkeypatch):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test))

    async def broken(*args):
        raise RuntimeError("catalog down")

    monkeypatch.setattr(catalog, "get_course", broken)

    certificates = await service.list_for_student(db, STUDENT_ID)

    assert [c["certificate_id"] for c in certificates] == [certificate["certificate_id"]]
    assert "course" not in certificates[0]


# ==================== DOWNLOAD / REVOKE ====================

@pytest.mark.asyncio
async def test_download_counts_and_checks_owner(db):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test))

    first = await service.get_for_download(db, certificate["certificate_id"], student())
    second = await service.get_for_download(db, certificate["certificate_id"], admin())

    assert first["download_count"] == 1
    assert second["download_count"] == 2
    assert second["last_downloaded"] is not None
    with pytest.raises(ForbiddenError):
        await service.get_for_download(db, certificate["certificate_id"], student(OTHER_STUDENT_ID))
    with pytest.raises(NotFoundError):
        await service.get_for_download(db, "CERT-NOPE-000000", student())


@pytest.mark.asyncio
async def test_revoke_is_terminal(db):
    test = await create_test(db)
    certificate = await issue(db, test, passing_attempt(test))

    revoked = await service.revoke(db, certificate["certificate_id"], "Issued in error", admin())

    assert revoked["status"] == "revoked"
    assert "_id" not in revoked
    assert revoked["revoked_by"] == admin().user_id
    with pytest.raises(ConflictError):
        await service.revoke(db, certificate["certificate_id"], "Again", admin())
    with pytest.raises(ConflictError):
        await service.get_for_download(db, certificate["certificate_id"], student())


@pytest.mark.asyncio
async def test_admin_listing_filters(db):
    test = await create_test(db)
    await issue(db, test, passing_attempt(test))

    assert len(await service.list_all(db, student_id=STUDENT_ID)) == 1
    assert await service.list_all(db, student_id=OTHER_STUDENT_ID) == []
    assert len(await service.list_all(db, test_id=test["test_id"])) == 1
    assert len(await service.list_all(db, status=CertificateStatus.ACTIVE)) == 1
