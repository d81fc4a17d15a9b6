"""Bullet deduplication: cluster near-duplicate bullets and keep the strongest phrasing.

Candidates are embedded (or reuse a stored embedding), ranked by a content
score, and greedily assigned to the most similar existing cluster whose
representative passes the metric guard. Each surviving cluster is projected
to one ``DedupedBullet`` carrying the provenance of every absorbed bullet.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

import numpy as np

from profile_canon.config import get_settings
from profile_canon.services.bullet_analysis import analyze_bullet_content
from profile_canon.services.embedder import embed_text
from profile_canon.utils import coerce_embedding

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], Awaitable[list[float]]]

METRIC_BONUS = 4
MAX_TOOL_BONUS = 3
MAX_REGULATORY_BONUS = 2
SIMILARITY_PRIORITY_WEIGHT = 5


@dataclass
class BulletCandidate:
    """One observed bullet phrasing, usually a row of ``experience_bullets``.

    ``embedding`` may be a vector, a serialized vector string, or None.
    """

    content: str
    id: str | None = None
    source_count: int | None = None
    importance_score: float | None = None
    embedding: Any = None


@dataclass
class DedupedBullet:
    id: str
    content: str
    representative_bullet_id: str | None
    supporting_bullet_ids: list[str]
    source_ids: list[str]
    source_count: int
    average_similarity: float
    embedding: list[float] | None = None


@dataclass
class NormalizedCandidate:
    id: str | None
    content: str
    source_count: int
    importance: float
    embedding: list[float] | None
    content_boost: float = 0
    has_metric: bool = False
    tool_hits: list[str] = field(default_factory=list)
    regulatory_hits: list[str] = field(default_factory=list)
    numeric_tokens: list[str] = field(default_factory=list)


@dataclass
class BulletCluster:
    id: str
    representative: NormalizedCandidate
    members: list[NormalizedCandidate]
    total_source_count: int
    average_similarity: float


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

async def _ensure_embedding(candidate: BulletCandidate, embed: EmbedFn) -> list[float] | None:
    embedding = coerce_embedding(candidate.embedding)
    if embedding is not None:
        return embedding

    if not candidate.content:
        return None

    try:
        return await embed(candidate.content)
    except Exception as exc:
        logger.error("Failed to embed bullet %s during dedupe: %s", candidate.id, exc)
        return None


async def _normalize_candidate(candidate: BulletCandidate, embed: EmbedFn) -> NormalizedCandidate:
    embedding = await _ensure_embedding(candidate, embed)
    content = candidate.content or ""
    analysis = analyze_bullet_content(content)
    return NormalizedCandidate(
        id=candidate.id,
        content=content,
        source_count=max(1, candidate.source_count or 1),
        importance=candidate.importance_score or 0,
        embedding=embedding,
        content_boost=analysis.boost,
        has_metric=analysis.has_metric,
        tool_hits=analysis.tool_hits,
        regulatory_hits=analysis.regulatory_hits,
        numeric_tokens=analysis.numeric_tokens,
    )


async def normalize_candidates(
    candidates: Sequence[BulletCandidate],
    embed: EmbedFn,
) -> list[NormalizedCandidate]:
    """Resolve embeddings concurrently and attach content signals."""
    return list(await asyncio.gather(*(_normalize_candidate(c, embed) for c in candidates)))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for mismatched, empty, or zero-magnitude vectors."""
    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)
    if a_arr.shape != b_arr.shape or not a_arr.size:
        return 0.0

    norm_a = np.linalg.norm(a_arr)
    norm_b = np.linalg.norm(b_arr)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a_arr, b_arr) / (norm_a * norm_b))


def compute_candidate_score(candidate: NormalizedCandidate) -> float:
    # has_metric is counted in content_boost too; quantified bullets should win.
    base_score = candidate.source_count * 2 + candidate.importance
    metric_bonus = METRIC_BONUS if candidate.has_metric else 0
    tool_bonus = min(MAX_TOOL_BONUS, len(candidate.tool_hits))
    regulatory_bonus = min(MAX_REGULATORY_BONUS, len(candidate.regulatory_hits))
    return base_score + candidate.content_boost + metric_bonus + tool_bonus + regulatory_bonus


def compute_cluster_priority(cluster: BulletCluster) -> float:
    density_score = cluster.total_source_count + cluster.average_similarity * SIMILARITY_PRIORITY_WEIGHT
    return compute_candidate_score(cluster.representative) + density_score


def should_merge_candidates(
    representative: NormalizedCandidate,
    candidate: NormalizedCandidate,
) -> bool:
    """Refuse merges that would blur or contradict a quantified claim."""
    if representative.has_metric and not candidate.has_metric:
        return False

    if representative.has_metric and candidate.has_metric:
        if (
            representative.numeric_tokens
            and candidate.numeric_tokens
            and not set(representative.numeric_tokens) & set(candidate.numeric_tokens)
        ):
            return False

    return True


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------

def _create_cluster(representative: NormalizedCandidate) -> BulletCluster:
    return BulletCluster(
        id=str(uuid.uuid4()),
        representative=representative,
        members=[representative],
        total_source_count=representative.source_count,
        average_similarity=1.0,
    )


def _find_best_cluster(
    candidate: NormalizedCandidate,
    clusters: list[BulletCluster],
    similarity_threshold: float,
) -> tuple[BulletCluster | None, float]:
    best_cluster: BulletCluster | None = None
    best_similarity = 0.0

    for cluster in clusters:
        rep_embedding = cluster.representative.embedding
        if not rep_embedding:
            continue
        similarity = cosine_similarity(candidate.embedding, rep_embedding)  # type: ignore[arg-type]
        if similarity < similarity_threshold:
            continue
        # Strictly greater: zero similarity never merges, ties keep the earliest cluster
        if similarity <= best_similarity:
            continue
        if not should_merge_candidates(cluster.representative, candidate):
            continue
        best_cluster = cluster
        best_similarity = similarity

    return best_cluster, best_similarity


def _absorb(cluster: BulletCluster, candidate: NormalizedCandidate, similarity: float) -> None:
    cluster.members.append(candidate)
    cluster.total_source_count += candidate.source_count
    member_count = len(cluster.members)
    cluster.average_similarity = (
        cluster.average_similarity * (member_count - 1) + similarity
    ) / member_count

    if compute_candidate_score(candidate) > compute_candidate_score(cluster.representative):
        cluster.representative = candidate


def _to_deduped_bullet(cluster: BulletCluster) -> DedupedBullet:
    representative = cluster.representative
    member_ids = [m.id for m in cluster.members if m.id]
    source_ids = list(dict.fromkeys(
        [representative.id] + member_ids if representative.id else member_ids
    ))
    return DedupedBullet(
        id=cluster.id,
        content=representative.content.strip(),
        representative_bullet_id=representative.id,
        supporting_bullet_ids=member_ids,
        source_ids=source_ids,
        source_count=cluster.total_source_count,
        average_similarity=round(cluster.average_similarity, 3),
        embedding=representative.embedding,
    )


def cluster_candidates(
    candidates: Sequence[NormalizedCandidate],
    similarity_threshold: float,
    max_bullets: int,
) -> list[DedupedBullet]:
    """Greedy single-pass clustering over already-normalized candidates.

    Best-scoring candidates are placed first so they tend to become
    representatives. Output is ordered by cluster priority and capped at
    ``max_bullets`` (never below one cluster).
    """
    if not candidates:
        return []

    ranked = sorted(candidates, key=compute_candidate_score, reverse=True)
    clusters: list[BulletCluster] = []

    for candidate in ranked:
        if not candidate.embedding:
            clusters.append(_create_cluster(candidate))
            continue

        matched, similarity = _find_best_cluster(candidate, clusters, similarity_threshold)
        if matched is None:
            clusters.append(_create_cluster(candidate))
        else:
            _absorb(matched, candidate, similarity)

    limit = max(1, min(max_bullets, len(clusters)))
    prioritized = sorted(clusters, key=compute_cluster_priority, reverse=True)[:limit]
    return [_to_deduped_bullet(c) for c in prioritized]


async def dedupe_bullets(
    bullets: Sequence[BulletCandidate],
    similarity_threshold: float | None = None,
    max_bullets: int | None = None,
    embed: EmbedFn | None = None,
) -> list[DedupedBullet]:
    """Deduplicate bullets by clustering embeddings and selecting the strongest phrasing."""
    if not bullets:
        return []

    if similarity_threshold is None:
        similarity_threshold = get_settings().bullet_similarity_threshold
    if max_bullets is None:
        max_bullets = get_settings().max_canonical_bullets

    usable = [b for b in bullets if b.content and b.content.strip()]
    if not usable:
        return []

    normalized = await normalize_candidates(usable, embed or embed_text)
    deduped = cluster_candidates(normalized, similarity_threshold, max_bullets)
    logger.info(
        "Deduplicated %d bullets into %d clusters (threshold=%.2f, cap=%d)",
        len(usable), len(deduped), similarity_threshold, max_bullets,
    )
    return deduped
