import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import HTMLResponse
from fastapi.encoders import jsonable_encoder
from fastapi.concurrency import run_in_threadpool
from motor.motor_asyncio import AsyncIOMotorDatabase

from lms.certificates import service
from lms.certificates.models import CertificateStatus
from lms.certificates.rendering import render_certificate_html, render_certificate_png
from lms.certificates.schemas import RevokeRequest, VerificationResult
from lms.core.auth import UserContext, get_current_user, require_admin
from lms.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/certificates", tags=["Certificates"])
admin_router = APIRouter(prefix="/admin/certificates", tags=["Certificate Administration"])

# ==================== STUDENT ====================

@router.get("")
async def get_my_certificates(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
) -> List[dict]:
    """
    Own certificates, most recent first
    Always 200: any internal failure degrades to an empty list
    """
    try:
        return jsonable_encoder(await service.list_for_student(db, user.user_id))
    except Exception:
        logger.exception("Listing certificates failed for %s", user.user_id)
        return []

@router.get("/verify/{certificate_id}", response_model=VerificationResult, response_model_exclude_none=True)
async def verify_certificate(certificate_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Public verification, no auth
    Not found, revoked and expired answer 200 with valid=false
    """
    try:
        return await service.verify_certificate(db, certificate_id)
    except Exception:
        logger.exception("Verification failed for %s", certificate_id)
        return {"valid": False, "reason": "unavailable", "message": "Certificate could not be verified right now"}

@router.get("/{certificate_id}/download")
async def download_certificate(
    certificate_id: str,
    format: Literal["json", "html", "png"] = "json",
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Owner only; counts the download"""
    certificate = await service.get_for_download(db, certificate_id, user)

    if format == "png":
        return Response(
            content=await run_in_threadpool(render_certificate_png, certificate),
            media_type="image/png",
            headers={"Content-Disposition": f"attachment; filename={certificate_id}.png"}
        )
    if format == "html":
        return HTMLResponse(content=render_certificate_html(certificate))
    return jsonable_encoder(certificate)

# ==================== ADMIN ====================

@admin_router.get("")
async def list_certificates(
    student_id: Optional[str] = None,
    test_id: Optional[str] = None,
    status: Optional[CertificateStatus] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
) -> List[dict]:
    return jsonable_encoder(await service.list_all(db, student_id, test_id, status))

@admin_router.post("/{certificate_id}/revoke")
async def revoke_certificate(
    certificate_id: str,
    data: RevokeRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    certificate = await service.revoke(db, certificate_id, data.reason, admin)
    return {
        "status": "success",
        "message": f"Certificate {certificate_id} revoked",
        "data": jsonable_encoder(certificate)
    }
