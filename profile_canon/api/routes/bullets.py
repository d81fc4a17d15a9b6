"""Stateless bullet deduplication endpoint."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from profile_canon.api.auth import get_current_user
from profile_canon.schemas.pydantic import DedupedBulletOut, DedupeRequest, DedupeResponse
from profile_canon.services.bullet_dedupe import BulletCandidate, dedupe_bullets

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bullets", tags=["bullets"])
limiter = Limiter(key_func=get_remote_address)


@router.post("/dedupe", response_model=DedupeResponse)
@limiter.limit("30/minute")
async def dedupe(
    request: Request,
    body: DedupeRequest,
    user_id: uuid.UUID = Depends(get_current_user),
):
    """Cluster near-duplicate bullets and return one representative per cluster.

    Nothing is persisted; callers store the result themselves.
    """
    candidates = [BulletCandidate(**b.model_dump()) for b in body.bullets]
    deduped = await dedupe_bullets(
        candidates,
        similarity_threshold=body.similarity_threshold,
        max_bullets=body.max_bullets,
    )
    logger.info("User %s deduped %d bullets into %d", user_id, len(candidates), len(deduped))

    bullets = [DedupedBulletOut.model_validate(d) for d in deduped]
    if not body.include_embeddings:
        for b in bullets:
            b.embedding = None
    return DedupeResponse(
        bullets=bullets,
        input_count=len(candidates),
        cluster_count=len(bullets),
    )
