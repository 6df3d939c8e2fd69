from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict

from ..observability.logging import LOG_LEVELS, get_log_level, get_logger, normalize_log_level, set_log_level

router = APIRouter(tags=["admin"])
log = get_logger("admin")


class LogLevelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str


@router.get("/log-level")
def read_log_level():
    return {"level": get_log_level()}


@router.post("/log-level")
def change_log_level(body: LogLevelRequest):
    level = normalize_log_level(body.level)
    if level is None:
        raise HTTPException(
            status_code=400,
            detail=f"Log level must be one of: {', '.join(LOG_LEVELS)}",
        )
    set_log_level(level)
    log.warning("log_level_changed", level=level, requested=body.level)
    return {"message": f"Log level changed to {level}"}
