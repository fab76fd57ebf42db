import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ledgerapi.config import settings
from ledgerapi.database.session import get_db
from ledgerapi.schemas.health import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    """Health check endpoint."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {str(e)}")
        database = "error"

    return HealthCheckResponse(
        status="healthy" if database == "ok" else "degraded",
        database=database,
        environment=settings.ENVIRONMENT,
    )
