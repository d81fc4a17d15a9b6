"""Pydantic v2 models for all request/response shapes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Response schemas are built from the service-layer dataclasses
_ATTR_CONFIG = ConfigDict(from_attributes=True)


# ── Bullet dedupe ──────────────────────────────────────────────────────
class BulletCandidateIn(BaseModel):
    id: str | None = Field(None, max_length=64)
    content: str = Field(max_length=2000)
    source_count: int | None = Field(None, ge=0)
    importance_score: float | None = None
    # A vector, or a serialized one such as "{0.1,0.2}"
    embedding: list[float] | str | None = None


class DedupeRequest(BaseModel):
    bullets: list[BulletCandidateIn] = Field(max_length=500)
    similarity_threshold: float | None = Field(None, ge=0.0, le=1.0)
    max_bullets: int | None = Field(None, le=200)
    include_embeddings: bool = False


class DedupedBulletOut(BaseModel):
    model_config = _ATTR_CONFIG
    id: str
    content: str
    representative_bullet_id: str | None
    supporting_bullet_ids: list[str]
    source_ids: list[str]
    source_count: int
    average_similarity: float
    embedding: list[float] | None = None


class DedupeResponse(BaseModel):
    bullets: list[DedupedBulletOut]
    input_count: int
    cluster_count: int


# ── Canonical profile ──────────────────────────────────────────────────
class CanonicalExperienceOut(BaseModel):
    model_config = _ATTR_CONFIG
    id: str
    normalized_company: str
    display_company: str
    primary_title: str
    title_progression: list[str]
    primary_location: str
    locations: list[str]
    start_date: str | None
    end_date: str | None
    is_current: bool
    source_experience_ids: list[str]
    bullets: list[DedupedBulletOut]

    @field_validator("bullets", mode="after")
    @classmethod
    def _drop_embeddings(cls, bullets: list[DedupedBulletOut]) -> list[DedupedBulletOut]:
        """Vectors are for storage and retrieval, not for clients."""
        for b in bullets:
            b.embedding = None
        return bullets


class CanonicalSkillOut(BaseModel):
    model_config = _ATTR_CONFIG
    id: str
    controlled_key: str
    label: str
    category: str
    source_skill_ids: list[str]
    source_count: int
    weight: int


class CanonicalProfileOut(BaseModel):
    model_config = _ATTR_CONFIG
    experiences: list[CanonicalExperienceOut]
    skills: list[CanonicalSkillOut]
