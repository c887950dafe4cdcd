"""Health check endpoint for container probes."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bandcatalog import __version__

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthStatus(BaseModel):
    """Overall health status response."""

    status: str = Field(description="healthy or unhealthy")
    timestamp: str = Field(description="ISO timestamp of health check")
    version: str = Field(default=__version__, description="Application version")
    checks: dict[str, Any] = Field(
        default_factory=dict, description="Individual component checks"
    )


@router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> JSONResponse:
    """Returns 200 when the database answers, 503 otherwise."""
    database_ok = False
    db = getattr(request.app.state, "db", None)
    if db is not None:
        try:
            async with db.session_scope() as session:
                await session.execute(text("SELECT 1"))
            database_ok = True
        except SQLAlchemyError:
            logger.warning("Health check: database unreachable", exc_info=True)

    body = HealthStatus(
        status="healthy" if database_ok else "unhealthy",
        timestamp=datetime.now(UTC).isoformat(),
        checks={"database": database_ok},
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
