# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""System endpoints — health, readiness, metrics."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from agenda.core.config import settings
from agenda.core.dependencies import get_persona_repo
from agenda.core.logging import get_logger
from agenda.repositories import PersonaRepository

logger = get_logger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
def health_check():
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }


@router.get("/health/ready")
def readiness_check(repo: PersonaRepository = Depends(get_persona_repo)):
    try:
        repo.verify_connection()
    except SQLAlchemyError:
        logger.exception("Readiness check failed")
        return JSONResponse(status_code=503, content={"error": "Database unavailable"})
    return {"status": "ok", "database": "connected"}


@router.get("/metrics")
def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
