from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_app_settings
from ..settings import Settings

router = APIRouter()


@router.get("/", tags=["health"])
def health(settings: Settings = Depends(get_app_settings)):
    return {
        "message": "HCM Feed Records Admin API",
        "version": settings.app_version,
        "status": "running",
        "environment": settings.normalized_environment,
        "dynamodb": "configured" if settings.ddb_table_name else "missing",
        "endpoints": [
            "POST /api/records",
            "GET /api/records",
            "GET /api/records/filter",
            "GET /api/records/search",
            "DELETE /api/records",
            "DELETE /api/records/batchdelete",
            "PATCH /api/records/processed-status",
        ],
    }
