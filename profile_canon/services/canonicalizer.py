"""Canonical profile builder: merge raw experiences, dedupe their bullets, fold skills.

The canonical tables are a derived view of the raw ones: every refresh
deletes the user's canonical rows and rewrites them in a single transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_canon.api.db_helpers import fetch_user_rows, get_or_404
from profile_canon.exceptions import CanonicalizationError
from profile_canon.models.tables import (
    CanonicalExperience,
    CanonicalExperienceBullet,
    CanonicalSkill,
    Experience,
    ExperienceBullet,
    Skill,
)
from profile_canon.services.bullet_dedupe import (
    BulletCandidate,
    DedupedBullet,
    EmbedFn,
    dedupe_bullets,
)
from profile_canon.services.embedder import embed_texts
from profile_canon.services.experience_grouping import (
    FAR_FUTURE,
    DateRange,
    ExperienceRecord,
    build_date_range,
    build_title_progression,
    calculate_bullet_budget,
    choose_earliest,
    choose_latest,
    earliest_start_date,
    has_current,
    normalize_company,
    normalize_date_string,
    parse_date,
    ranges_overlap_or_adjacent,
    resolve_end_date,
    should_skip_experience,
    titles_are_similar,
)
from profile_canon.services.skill_taxonomy import (
    CanonicalSkillRecord,
    SkillRecord,
    build_canonical_skills,
)
from profile_canon.utils import coerce_embedding

logger = logging.getLogger(__name__)


@dataclass
class CanonicalExperienceRecord:
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
    bullets: list[DedupedBullet] = field(default_factory=list)


@dataclass
class CanonicalProfile:
    experiences: list[CanonicalExperienceRecord] = field(default_factory=list)
    skills: list[CanonicalSkillRecord] = field(default_factory=list)


@dataclass
class _ExperienceGroup:
    id: str
    normalized_company: str
    display_company: str
    range: DateRange
    experiences: list[ExperienceRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Building (no database access)
# ---------------------------------------------------------------------------

def _end_sort_key(end_date: str | None) -> int:
    return (parse_date(end_date) or FAR_FUTURE).toordinal()


def group_experiences(experiences: list[ExperienceRecord]) -> list[_ExperienceGroup]:
    """Group rows that describe the same job: same company, compatible dates, similar title."""
    groups: list[_ExperienceGroup] = []
    ordered = sorted(experiences, key=lambda e: _end_sort_key(e.end_date), reverse=True)

    for experience in ordered:
        if should_skip_experience(experience):
            continue
        company = normalize_company(experience.company)
        if company is None:
            continue
        normalized, display = company
        date_range = build_date_range(experience)

        target = next(
            (
                g for g in groups
                if g.normalized_company == normalized
                and ranges_overlap_or_adjacent(g.range, date_range)
                and titles_are_similar(g.experiences[0].title, experience.title)
            ),
            None,
        )
        if target is None:
            target = _ExperienceGroup(
                id=str(uuid.uuid4()),
                normalized_company=normalized,
                display_company=display,
                range=DateRange(start=date_range.start, end=date_range.end),
            )
            groups.append(target)
        else:
            target.range.start = choose_earliest(target.range.start, date_range.start)
            target.range.end = choose_latest(target.range.end, date_range.end)
            if len(display) > len(target.display_company):
                target.display_company = display

        target.experiences.append(experience)

    return groups


async def build_canonical_experiences(
    experiences: list[ExperienceRecord],
    embed: EmbedFn | None = None,
) -> list[CanonicalExperienceRecord]:
    """Collapse raw experiences into canonical ones with deduplicated bullets.

    Current roles come first, then by end date (most recent first).
    """
    if not experiences:
        return []

    canonical: list[CanonicalExperienceRecord] = []
    for group in group_experiences(experiences):
        locations = list(dict.fromkeys(
            e.location.strip() for e in group.experiences if e.location and e.location.strip()
        ))
        progression = build_title_progression(group.experiences)
        candidates = [b for e in group.experiences for b in e.bullets]
        budget = calculate_bullet_budget(group.experiences, len(candidates))
        earliest = earliest_start_date(group.experiences)

        bullets = (
            await dedupe_bullets(candidates, max_bullets=budget, embed=embed)
            if candidates else []
        )

        canonical.append(CanonicalExperienceRecord(
            id=group.id,
            normalized_company=group.normalized_company,
            display_company=group.display_company,
            primary_title=progression[0] if progression else (group.experiences[0].title or ""),
            title_progression=progression,
            primary_location=locations[0] if locations else "",
            locations=locations,
            start_date=normalize_date_string(earliest.isoformat() if earliest else None),
            end_date=resolve_end_date(group.experiences),
            is_current=has_current(group.experiences),
            source_experience_ids=[e.id for e in group.experiences],
            bullets=bullets,
        ))

    return sorted(
        canonical,
        key=lambda c: (0 if c.is_current else 1, -_end_sort_key(c.end_date)),
    )


# ---------------------------------------------------------------------------
# Database I/O
# ---------------------------------------------------------------------------

async def _fetch_raw_profile(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> tuple[list[ExperienceRecord], list[SkillRecord]]:
    exp_rows = await fetch_user_rows(db, Experience, user_id)
    bullet_rows = await fetch_user_rows(db, ExperienceBullet, user_id)
    skill_rows = await fetch_user_rows(db, Skill, user_id)

    bullets_by_experience: dict[uuid.UUID, list[BulletCandidate]] = defaultdict(list)
    for b in bullet_rows:
        bullets_by_experience[b.experience_id].append(BulletCandidate(
            id=str(b.id),
            content=b.content,
            source_count=b.source_count,
            importance_score=b.importance_score,
            embedding=b.embedding,
        ))

    experiences = [
        ExperienceRecord(
            id=str(e.id),
            company=e.company,
            title=e.title,
            location=e.location,
            start_date=e.start_date,
            end_date=e.end_date,
            is_current=bool(e.is_current),
            bullets=bullets_by_experience.get(e.id, []),
        )
        for e in exp_rows
    ]
    skills = [
        SkillRecord(id=str(s.id), name=s.canonical_name, source_count=s.source_count)
        for s in skill_rows
    ]
    return experiences, skills


async def _backfill_embeddings(bullets: list[DedupedBullet]) -> list[list[float] | None]:
    """Representative embeddings, fetching the missing ones in one batch.

    A failed batch leaves those bullets without an embedding; the profile is
    still written.
    """
    embeddings: list[list[float] | None] = [b.embedding or None for b in bullets]
    missing = [i for i, e in enumerate(embeddings) if e is None]
    if not missing:
        return embeddings

    try:
        fetched = await embed_texts([bullets[i].content for i in missing])
    except Exception as exc:
        logger.error(
            "Failed to backfill %d canonical bullet embeddings (first bullet=%s): %s",
            len(missing), bullets[missing[0]].id, exc,
        )
        return embeddings

    for i, embedding in zip(missing, fetched):
        embeddings[i] = embedding
    return embeddings


def _source_bullet_ids(bullet: DedupedBullet) -> list[uuid.UUID]:
    ids = bullet.source_ids or [
        i for i in [bullet.representative_bullet_id, *bullet.supporting_bullet_ids] if i
    ]
    return [uuid.UUID(i) for i in dict.fromkeys(ids)]


async def _persist_canonical_profile(
    db: AsyncSession,
    user_id: uuid.UUID,
    profile: CanonicalProfile,
) -> None:
    pending = [
        (experience, position, bullet)
        for experience in profile.experiences
        for position, bullet in enumerate(experience.bullets)
    ]
    embeddings = await _backfill_embeddings([bullet for _, _, bullet in pending])

    await db.execute(delete(CanonicalExperienceBullet).where(CanonicalExperienceBullet.user_id == user_id))
    await db.execute(delete(CanonicalExperience).where(CanonicalExperience.user_id == user_id))
    await db.execute(delete(CanonicalSkill).where(CanonicalSkill.user_id == user_id))

    db.add_all([
        CanonicalExperience(
            id=uuid.UUID(experience.id),
            user_id=user_id,
            normalized_company=experience.normalized_company,
            display_company=experience.display_company,
            primary_title=experience.primary_title,
            title_progression=experience.title_progression,
            primary_location=experience.primary_location or None,
            locations=experience.locations,
            start_date=experience.start_date,
            end_date=experience.end_date,
            is_current=experience.is_current,
            source_experience_ids=[uuid.UUID(i) for i in experience.source_experience_ids],
            source_count=len(experience.source_experience_ids),
            bullet_count=len(experience.bullets),
        )
        for experience in profile.experiences
    ])
    # Bullets reference experiences; insert parents first.
    await db.flush()

    for (experience, position, bullet), embedding in zip(pending, embeddings):
        source_ids = _source_bullet_ids(bullet)
        db.add(CanonicalExperienceBullet(
            id=uuid.UUID(bullet.id),
            user_id=user_id,
            canonical_experience_id=uuid.UUID(experience.id),
            position=position,
            representative_bullet_id=(
                uuid.UUID(bullet.representative_bullet_id) if bullet.representative_bullet_id else None
            ),
            content=bullet.content,
            source_bullet_ids=source_ids,
            source_count=bullet.source_count or len(source_ids) or 1,
            avg_similarity=bullet.average_similarity or 1.0,
            origin="canonical",
            embedding=embedding,
        ))

    db.add_all([
        CanonicalSkill(
            id=uuid.UUID(skill.id),
            user_id=user_id,
            controlled_key=skill.controlled_key,
            label=skill.label,
            category=skill.category or "Other",
            source_skill_ids=[uuid.UUID(i) for i in skill.source_skill_ids],
            source_count=skill.source_count or 1,
            weight=skill.weight,
        )
        for skill in profile.skills
    ])
    await db.commit()


async def canonicalize_profile(db: AsyncSession, user_id: uuid.UUID) -> CanonicalProfile:
    """Rebuild and persist the user's canonical profile from their raw rows."""
    logger.info("Building canonical profile for user %s", user_id)
    try:
        experiences, skills = await _fetch_raw_profile(db, user_id)
        profile = CanonicalProfile(
            experiences=await build_canonical_experiences(experiences),
            skills=build_canonical_skills(skills),
        )
        await _persist_canonical_profile(db, user_id, profile)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Canonical profile refresh failed for user %s: %s", user_id, exc)
        raise CanonicalizationError() from exc

    logger.info(
        "Canonical profile refreshed for user %s: %d experiences, %d bullets, %d skills",
        user_id,
        len(profile.experiences),
        sum(len(e.bullets) for e in profile.experiences),
        len(profile.skills),
    )
    return profile


# ---------------------------------------------------------------------------
# Read-back
# ---------------------------------------------------------------------------

def _bullet_from_row(row: CanonicalExperienceBullet) -> DedupedBullet:
    source_ids = [str(i) for i in (row.source_bullet_ids or [])]
    representative = str(row.representative_bullet_id) if row.representative_bullet_id else None
    return DedupedBullet(
        id=str(row.id),
        content=row.content,
        representative_bullet_id=representative,
        supporting_bullet_ids=[i for i in source_ids if i != representative],
        source_ids=source_ids,
        source_count=row.source_count or 1,
        average_similarity=float(row.avg_similarity or 1.0),
        embedding=coerce_embedding(row.embedding),
    )


def _experience_from_row(
    row: CanonicalExperience,
    bullets: list[DedupedBullet],
) -> CanonicalExperienceRecord:
    progression = list(row.title_progression or [])
    return CanonicalExperienceRecord(
        id=str(row.id),
        normalized_company=row.normalized_company,
        display_company=row.display_company,
        primary_title=row.primary_title or (progression[0] if progression else ""),
        title_progression=progression,
        primary_location=row.primary_location or "",
        locations=list(row.locations or []),
        start_date=row.start_date,
        end_date=row.end_date,
        is_current=bool(row.is_current),
        source_experience_ids=[str(i) for i in (row.source_experience_ids or [])],
        bullets=bullets,
    )


async def get_canonical_profile(db: AsyncSession, user_id: uuid.UUID) -> CanonicalProfile:
    """Load the persisted canonical profile without recomputing it."""
    # AsyncSession does not allow concurrent operations; queries run sequentially.
    exp_rows = await fetch_user_rows(
        db, CanonicalExperience, user_id,
        CanonicalExperience.is_current.desc(),
        CanonicalExperience.end_date.desc().nullsfirst(),
    )
    bullet_rows = await fetch_user_rows(db, CanonicalExperienceBullet, user_id, CanonicalExperienceBullet.position)
    skill_rows = await fetch_user_rows(db, CanonicalSkill, user_id, CanonicalSkill.label)

    bullets_by_experience: dict[uuid.UUID, list[DedupedBullet]] = defaultdict(list)
    for b in bullet_rows:
        bullets_by_experience[b.canonical_experience_id].append(_bullet_from_row(b))

    experiences = [
        _experience_from_row(e, bullets_by_experience.get(e.id, []))
        for e in exp_rows
    ]
    skills = [
        CanonicalSkillRecord(
            id=str(s.id),
            controlled_key=s.controlled_key,
            label=s.label,
            category=s.category,
            source_skill_ids=[str(i) for i in (s.source_skill_ids or [])],
            source_count=s.source_count or 0,
            weight=s.weight or 0,
        )
        for s in skill_rows
    ]
    return CanonicalProfile(experiences=experiences, skills=skills)


async def get_canonical_experience(
    db: AsyncSession,
    user_id: uuid.UUID,
    experience_id: uuid.UUID,
) -> CanonicalExperienceRecord:
    """Load one canonical experience with its bullets, or raise NotFoundError."""
    row = await get_or_404(db, CanonicalExperience, experience_id, user_id, "Canonical experience not found")
    bullet_rows = await db.execute(
        select(CanonicalExperienceBullet)
        .where(
            CanonicalExperienceBullet.canonical_experience_id == row.id,
            CanonicalExperienceBullet.user_id == user_id,
        )
        .order_by(CanonicalExperienceBullet.position)
    )
    return _experience_from_row(row, [_bullet_from_row(b) for b in bullet_rows.scalars().all()])
