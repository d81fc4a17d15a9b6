"""Supabase JWT authentication dependency."""

from __future__ import annotations

import json
import logging
import time
import uuid

import httpx
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.algorithms import RSAAlgorithm

from profile_canon.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer()

# kid -> JWK; refreshed when a token names a kid we have not seen (key rotation)
_jwks_cache: dict[str, dict] = {}
# An unknown kid triggers at most one JWKS fetch per interval
JWKS_REFRESH_INTERVAL = 60.0
_jwks_refreshed_at: float | None = None


async def _refresh_jwks() -> None:
    settings = get_settings()
    url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    async with httpx.AsyncClient(timeout=10) as client:
        resp = await client.get(url)
        resp.raise_for_status()
    keys = resp.json().get("keys", [])
    _jwks_cache.clear()
    _jwks_cache.update({k.get("kid", ""): k for k in keys})
    logger.info("Loaded %d Supabase signing keys", len(keys))


async def _rs256_key(token: str):
    global _jwks_refreshed_at
    kid = jwt.get_unverified_header(token).get("kid") or ""
    now = time.monotonic()
    if kid not in _jwks_cache and (
        _jwks_refreshed_at is None or now - _jwks_refreshed_at >= JWKS_REFRESH_INTERVAL
    ):
        _jwks_refreshed_at = now
        await _refresh_jwks()
    key_data = _jwks_cache.get(kid)
    if key_data is None and not kid and _jwks_cache:
        key_data = next(iter(_jwks_cache.values()))
    if key_data is None:
        raise jwt.InvalidTokenError("No matching RS256 key found in JWKS")
    return RSAAlgorithm.from_jwk(json.dumps(key_data))


async def decode_supabase_token(token: str) -> dict:
    """Verify a Supabase access token and return its claims.

    Legacy projects sign with HS256 and the shared JWT secret; projects on
    JWT Signing Keys use RS256 published at the JWKS endpoint.
    """
    settings = get_settings()
    alg = jwt.get_unverified_header(token).get("alg", "HS256")
    if alg == "RS256":
        key = await _rs256_key(token)
        return jwt.decode(token, key, algorithms=["RS256"], audience="authenticated")
    return jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=["HS256"],
        audience="authenticated",
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> uuid.UUID:
    """Verify the bearer token and return the Supabase user id."""
    try:
        payload = await decode_supabase_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Unauthorized: {e}")
    except httpx.HTTPError as e:
        logger.error("Could not fetch Supabase JWKS: %s", e)
        raise _unauthorized("Unauthorized")

    try:
        return uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _unauthorized("Unauthorized")
