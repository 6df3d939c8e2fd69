from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx
from cachetools import TTLCache
from jose import JWTError, jwt

from ..settings import Settings


class CognitoAuthError(Exception):
    def __init__(self, message: str, *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class VerifiedUser:
    sub: str
    username: str
    email: str | None
    claims: dict[str, Any]


@dataclass
class TokenVerification:
    valid: bool
    user: VerifiedUser | None = None
    reason: str | None = None


# Stand-in identity when DISABLE_AUTH is honoured (development only).
DEV_USER = VerifiedUser(sub="dev-user", username="dev-user", email=None, claims={"sub": "dev-user"})

_JWKS_CACHE: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=4, ttl=60 * 60)


def _issuer(settings: Settings) -> str:
    if not settings.cognito_user_pool_id:
        raise CognitoAuthError("COGNITO_USER_POOL_ID is not set", status_code=500)
    region = settings.cognito_region or settings.aws_region
    return f"https://cognito-idp.{region}.amazonaws.com/{settings.cognito_user_pool_id}"


def _jwks_url(settings: Settings) -> str:
    return f"{_issuer(settings)}/.well-known/jwks.json"


def _get_jwks(settings: Settings) -> dict[str, Any]:
    url = _jwks_url(settings)
    cached = _JWKS_CACHE.get(url)
    if cached:
        return cached

    try:
        with httpx.Client(timeout=10.0) as client:
            resp = client.get(url)
            resp.raise_for_status()
            jwks = resp.json()
    except httpx.HTTPError as e:
        raise CognitoAuthError("Unable to fetch Cognito signing keys", status_code=503) from e

    _JWKS_CACHE[url] = jwks
    return jwks


def verify_bearer_token(token: str, settings: Settings) -> VerifiedUser:
    if settings.auth_disabled:
        return DEV_USER
    if not token:
        raise CognitoAuthError("Unauthorized: No token provided")
    if not settings.cognito_configured:
        raise CognitoAuthError("Authentication is not configured", status_code=500)

    jwks = _get_jwks(settings)
    issuer = _issuer(settings)

    token_use = (settings.cognito_token_use or "id").strip().lower()
    try:
        claims = jwt.decode(
            token,
            jwks,
            algorithms=["RS256"],
            # Access tokens carry `client_id` rather than `aud`.
            audience=settings.cognito_app_client_id if token_use == "id" else None,
            issuer=issuer,
            options={"verify_aud": token_use == "id", "verify_iss": True},
        )
    except JWTError as e:
        raise CognitoAuthError("Unauthorized: Invalid token") from e

    exp = claims.get("exp")
    if exp and int(exp) < int(time.time()):
        raise CognitoAuthError("Unauthorized: Token expired")

    if str(claims.get("token_use") or "") != token_use:
        raise CognitoAuthError("Unauthorized: Invalid token use")

    if token_use == "access" and claims.get("client_id") != settings.cognito_app_client_id:
        raise CognitoAuthError("Unauthorized: Invalid client")

    sub = str(claims.get("sub") or "")
    if not sub:
        raise CognitoAuthError("Unauthorized: Missing subject")

    email = claims.get("email")
    if email is not None:
        email = str(email)

    username = (
        str(claims.get("cognito:username") or "").strip()
        or str(claims.get("username") or "").strip()
        or (email or "")
    )

    return VerifiedUser(sub=sub, username=username, email=email, claims=claims)


def verify_token(token: str, settings: Settings) -> TokenVerification:
    """Non-raising form: {valid, user} or {invalid, reason}."""
    try:
        user = verify_bearer_token(token, settings)
    except CognitoAuthError as e:
        return TokenVerification(valid=False, reason=str(e))
    return TokenVerification(valid=True, user=user)
