from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from typing import List, Optional

from lms.certificates.models import CertificateStatus
from lms.core.database import without_id
from lms.core.utils import utcnow

# ==================== CERTIFICATE CRUD ====================

async def insert_certificate(db: AsyncIOMotorDatabase, certificate: dict) -> str:
    """Raises DuplicateKeyError when the holder already has a live certificate"""
    await db.certificates.insert_one(dict(certificate))
    return certificate["certificate_id"]

async def get_certificate(db: AsyncIOMotorDatabase, certificate_id: str) -> Optional[dict]:
    """Find by the public certificate id"""
    return await db.certificates.find_one({"certificate_id": certificate_id}, {"_id": 0})

async def find_current_certificate(db: AsyncIOMotorDatabase, student_id: str, test_id: str) -> Optional[dict]:
    """The non-revoked certificate for a (student, test) pair, if any"""
    return await db.certificates.find_one({
        "student_id": student_id,
        "test_id": test_id,
        "status": {"$ne": CertificateStatus.REVOKED.value}
    }, {"_id": 0})

async def update_certificate(db: AsyncIOMotorDatabase, certificate_id: str, updates: dict) -> Optional[dict]:
    return without_id(await db.certificates.find_one_and_update(
        {"certificate_id": certificate_id, "status": {"$ne": CertificateStatus.REVOKED.value}},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    ))

async def mark_expired(db: AsyncIOMotorDatabase, query: dict) -> int:
    """Lazily flip active certificates past their expiry date"""
    query = dict(query)
    query.update({
        "status": CertificateStatus.ACTIVE.value,
        "expiry_date": {"$ne": None, "$lt": utcnow()}
    })
    result = await db.certificates.update_many(
        query,
        {"$set": {"status": CertificateStatus.EXPIRED.value}}
    )
    return result.modified_count

async def list_student_certificates(db: AsyncIOMotorDatabase, student_id: str) -> List[dict]:
    """Non-revoked certificates, most recent first"""
    cursor = db.certificates.find({
        "student_id": student_id,
        "status": {"$ne": CertificateStatus.REVOKED.value}
    }, {"_id": 0}).sort("issue_date", -1)
    return await cursor.to_list(length=None)

async def list_certificates(db: AsyncIOMotorDatabase, filters: dict, skip: int = 0, limit: int = 100) -> List[dict]:
    query = {k: v for k, v in filters.items() if v is not None}
    cursor = db.certificates.find(query, {"_id": 0}).sort("issue_date", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)

async def count_test_certificates(db: AsyncIOMotorDatabase, test_id: str) -> int:
    return await db.certificates.count_documents({
        "test_id": test_id,
        "status": {"$ne": CertificateStatus.REVOKED.value}
    })

async def record_download(db: AsyncIOMotorDatabase, certificate_id: str) -> Optional[dict]:
    return without_id(await db.certificates.find_one_and_update(
        {"certificate_id": certificate_id},
        {"$inc": {"download_count": 1}, "$set": {"last_downloaded": utcnow()}},
        return_document=ReturnDocument.AFTER
    ))

async def revoke_certificate(db: AsyncIOMotorDatabase, certificate_id: str, reason: str, revoked_by: str) -> Optional[dict]:
    """Terminal: revoked certificates are never reactivated"""
    return without_id(await db.certificates.find_one_and_update(
        {"certificate_id": certificate_id, "status": {"$ne": CertificateStatus.REVOKED.value}},
        {
            "$set": {
                "status": CertificateStatus.REVOKED.value,
                "revoked_at": utcnow(),
                "revoked_reason": reason,
                "revoked_by": revoked_by
            },
            "$unset": {"holder_key": ""}
        },
        return_document=ReturnDocument.AFTER
    ))
