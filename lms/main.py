"""
LMS Assessment Service - Main Application
Tests, attempts, scoring and certificates
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lms.config import CORS_ORIGINS, LOG_LEVEL
from lms.core.database import create_indexes, db
from lms.core.errors import add_error_handlers

from lms.assessments.router import router as test_router, admin_router as test_admin_router
from lms.certificates.router import router as certificate_router, admin_router as certificate_admin_router
from lms.quizzes.router import router as quiz_router, admin_router as quiz_admin_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


# ==================== ROUTER SETUP ====================

def setup_routes(app: FastAPI):
    """Register all assessment-related routers"""
    app.include_router(test_router)
    app.include_router(test_admin_router)
    app.include_router(certificate_router)
    app.include_router(certificate_admin_router)
    app.include_router(quiz_router)
    app.include_router(quiz_admin_router)
    logger.info("Assessment routes registered")


def create_app() -> FastAPI:
    app = FastAPI(title="LMS Assessment Service")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_error_handlers(app)
    setup_routes(app)

    @app.on_event("startup")
    async def startup_event():
        await create_indexes(db)
        logger.info("Assessment service initialized")

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
