"""Canonical profile routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from profile_canon.api.auth import get_current_user
from profile_canon.models.database import get_db
from profile_canon.schemas.pydantic import CanonicalExperienceOut, CanonicalProfileOut
from profile_canon.services.canonicalizer import (
    canonicalize_profile,
    get_canonical_experience,
    get_canonical_profile,
)

router = APIRouter(prefix="/api/profile", tags=["profile"])
limiter = Limiter(key_func=get_remote_address)


@router.post("/canonicalize", response_model=CanonicalProfileOut)
@limiter.limit("10/hour")
async def refresh_canonical_profile(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user),
):
    """Rebuild the canonical profile from all uploaded experiences and skills."""
    profile = await canonicalize_profile(db, user_id)
    return CanonicalProfileOut.model_validate(profile)


@router.get("/canonical", response_model=CanonicalProfileOut)
async def read_canonical_profile(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user),
):
    """Return the last persisted canonical profile (empty until first refresh)."""
    profile = await get_canonical_profile(db, user_id)
    return CanonicalProfileOut.model_validate(profile)


@router.get("/canonical/experiences/{experience_id}", response_model=CanonicalExperienceOut)
async def read_canonical_experience(
    experience_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user),
):
    """Return one canonical experience with its ranked bullets."""
    experience = await get_canonical_experience(db, user_id, experience_id)
    return CanonicalExperienceOut.model_validate(experience)
