"""Health check endpoint with database connectivity check."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from omahub.core.config import settings
from omahub.core.database import check_db_connected, get_db
from omahub.schemas.health import HealthResponse
from omahub.services.roles import get_legacy_allowlist

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health and profile store connectivity.
    A disconnected store means roles are being resolved from the legacy allowlist only.
    """
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        legacy_allowlist_active=bool(get_legacy_allowlist()),
    )
