"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from mushee import __version__
from mushee.infrastructure.persistence import Database

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness plus a database ping."""
    db: Database = request.app.state.db
    database_ok = await db.ping()
    body: dict[str, Any] = {
        "status": "healthy" if database_ok else "degraded",
        "version": __version__,
        "checks": {"database": "ok" if database_ok else "unavailable"},
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )
