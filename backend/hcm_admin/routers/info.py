from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..deps import get_app_settings
from ..settings import Settings

router = APIRouter(tags=["info"])


@router.get("/info")
def service_info(request: Request, settings: Settings = Depends(get_app_settings)):
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": settings.app_description,
        "environment": settings.normalized_environment,
        "documentation": str(request.base_url).rstrip("/") + "/api-docs",
    }


@router.get("/environment")
def environment(settings: Settings = Depends(get_app_settings)):
    return {"NODE_ENV": settings.environment}


@router.get("/config/table-name")
def table_name(settings: Settings = Depends(get_app_settings)):
    if not settings.ddb_table_name:
        raise HTTPException(status_code=404, detail="TABLE_NAME environment variable is not set")
    return {"tableName": settings.ddb_table_name}
