from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from ..auth.cognito import verify_token
from ..deps import get_app_settings
from ..middleware.auth import SWAGGER_COOKIE
from ..observability.logging import get_logger
from ..settings import Settings

router = APIRouter(tags=["auth"])
log = get_logger("auth")

SWAGGER_COOKIE_MAX_AGE_S = 60 * 60


class VerifyTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


@router.post("/verify-token")
def verify_token_route(body: VerifyTokenRequest, settings: Settings = Depends(get_app_settings)):
    result = verify_token(body.token, settings)
    if not result.valid:
        log.info("verify_token_rejected", reason=result.reason)
        raise HTTPException(status_code=401, detail=result.reason or "Invalid token")

    resp = ORJSONResponse(content={"success": True})
    resp.set_cookie(
        SWAGGER_COOKIE,
        body.token,
        max_age=SWAGGER_COOKIE_MAX_AGE_S,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return resp


@router.post("/logout")
def logout():
    resp = ORJSONResponse(content={"success": True, "message": "Successfully logged out"})
    resp.delete_cookie(SWAGGER_COOKIE)
    return resp
