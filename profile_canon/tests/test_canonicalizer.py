"""Tests for the canonical profile builder."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from profile_canon.exceptions import CanonicalizationError
from profile_canon.models.tables import CanonicalExperience, CanonicalExperienceBullet, CanonicalSkill
from profile_canon.services.bullet_dedupe import DedupedBullet
from profile_canon.services.canonicalizer import (
    CanonicalExperienceRecord,
    CanonicalProfile,
    _bullet_from_row,
    _persist_canonical_profile,
    _source_bullet_ids,
    build_canonical_experiences,
    canonicalize_profile,
    group_experiences,
)
from profile_canon.services.experience_grouping import ExperienceRecord
from profile_canon.services.skill_taxonomy import CanonicalSkillRecord

BULLET_A = "aaaaaaaa-0000-0000-0000-000000000001"
BULLET_B = "aaaaaaaa-0000-0000-0000-000000000002"
BULLET_C = "aaaaaaaa-0000-0000-0000-000000000003"


def _mock_session() -> MagicMock:
    db = MagicMock()
    db.execute = AsyncMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


# ── Grouping ──────────────────────────────────────────────────────────────────

class TestGroupExperiences:
    def test_same_job_merges(self, acme_experiences):
        [group] = group_experiences(acme_experiences)
        assert group.normalized_company == "acme"
        assert group.display_company == "Acme, Inc."
        assert len(group.experiences) == 2

    def test_different_title_stays_apart(self):
        experiences = [
            ExperienceRecord(id="1", company="Acme", title="Product Manager", start_date="2020", end_date="2021"),
            ExperienceRecord(id="2", company="Acme", title="Software Engineer", start_date="2020", end_date="2021"),
        ]
        assert len(group_experiences(experiences)) == 2

    def test_distant_stints_stay_apart(self):
        experiences = [
            ExperienceRecord(id="1", company="Acme", title="Analyst", start_date="2012", end_date="2013-06"),
            ExperienceRecord(id="2", company="Acme", title="Analyst", start_date="2019", end_date="2021"),
        ]
        assert len(group_experiences(experiences)) == 2

    def test_placeholder_rows_skipped(self):
        experiences = [
            ExperienceRecord(id="1", company="Company Name", title="Title", start_date="YYYY", end_date="YYYY"),
            ExperienceRecord(id="2", company="", title="Analyst", start_date="2019", end_date="2021"),
        ]
        assert group_experiences(experiences) == []


class TestBuildCanonicalExperiences:
    @pytest.mark.asyncio
    async def test_empty(self, failing_embed):
        assert await build_canonical_experiences([], embed=failing_embed) == []

    @pytest.mark.asyncio
    async def test_promotion_collapses_into_one_experience(self, acme_experiences, failing_embed):
        [experience] = await build_canonical_experiences(acme_experiences, embed=failing_embed)

        assert experience.display_company == "Acme, Inc."
        assert experience.is_current is True
        assert experience.start_date == "2019-01"
        assert experience.end_date == "Present"
        assert experience.primary_title == "Senior Product Manager"
        assert experience.title_progression == ["Senior Product Manager", "Product Manager"]
        assert experience.locations == ["London, UK", "Remote"]
        assert experience.primary_location == "London, UK"
        assert sorted(experience.source_experience_ids) == [
            "11111111-1111-1111-1111-111111111111",
            "22222222-2222-2222-2222-222222222222",
        ]

        # The two onboarding bullets share an embedding; the pricing bullet stands alone.
        assert len(experience.bullets) == 2
        supporting = sorted(sorted(b.supporting_bullet_ids) for b in experience.bullets)
        assert supporting == [[BULLET_A, BULLET_C], [BULLET_B]]

    @pytest.mark.asyncio
    async def test_dates_are_normalized_to_year_month(self, failing_embed):
        experiences = [
            ExperienceRecord(id="1", company="Initech", title="Analyst", start_date="Mar 2018", end_date="Jan 2020"),
            ExperienceRecord(id="2", company="Initech", title="Analyst", start_date="2020-01-15", end_date="Sep 2020"),
        ]

        [experience] = await build_canonical_experiences(experiences, embed=failing_embed)

        assert experience.start_date == "2018-03"
        assert experience.end_date == "2020-09"

    @pytest.mark.asyncio
    async def test_current_roles_first_then_most_recent(self, failing_embed):
        experiences = [
            ExperienceRecord(id="1", company="Initech", title="Analyst", start_date="2014", end_date="2016"),
            ExperienceRecord(id="2", company="Globex", title="Engineer", start_date="2016", end_date="2019"),
            ExperienceRecord(id="3", company="Hooli", title="Lead", start_date="2019", end_date=None, is_current=True),
        ]
        result = await build_canonical_experiences(experiences, embed=failing_embed)
        assert [e.display_company for e in result] == ["Hooli", "Globex", "Initech"]
        assert all(e.bullets == [] for e in result)


# ── Persistence helpers ───────────────────────────────────────────────────────

class TestSourceBulletIds:
    def test_uses_source_ids(self):
        bullet = DedupedBullet(
            id=str(uuid.uuid4()), content="x", representative_bullet_id=BULLET_A,
            supporting_bullet_ids=[BULLET_A, BULLET_B], source_ids=[BULLET_A, BULLET_B],
            source_count=2, average_similarity=0.9,
        )
        assert _source_bullet_ids(bullet) == [uuid.UUID(BULLET_A), uuid.UUID(BULLET_B)]

    def test_falls_back_to_members(self):
        bullet = DedupedBullet(
            id=str(uuid.uuid4()), content="x", representative_bullet_id=BULLET_A,
            supporting_bullet_ids=[BULLET_A, BULLET_C], source_ids=[],
            source_count=2, average_similarity=0.9,
        )
        assert _source_bullet_ids(bullet) == [uuid.UUID(BULLET_A), uuid.UUID(BULLET_C)]


class TestBulletFromRow:
    def test_representative_excluded_from_supporting(self):
        row = SimpleNamespace(
            id=uuid.uuid4(),
            content="Launched onboarding",
            representative_bullet_id=uuid.UUID(BULLET_A),
            source_bullet_ids=[uuid.UUID(BULLET_A), uuid.UUID(BULLET_C)],
            source_count=2,
            avg_similarity=0.97,
            embedding="[0.5,0.5]",
        )
        bullet = _bullet_from_row(row)
        assert bullet.representative_bullet_id == BULLET_A
        assert bullet.supporting_bullet_ids == [BULLET_C]
        assert bullet.source_ids == [BULLET_A, BULLET_C]
        assert bullet.embedding == [0.5, 0.5]


class TestPersistCanonicalProfile:
    def _profile(self, bullet_embedding) -> CanonicalProfile:
        experience_id = str(uuid.uuid4())
        return CanonicalProfile(
            experiences=[CanonicalExperienceRecord(
                id=experience_id,
                normalized_company="acme",
                display_company="Acme",
                primary_title="Analyst",
                title_progression=["Analyst"],
                primary_location="",
                locations=[],
                start_date="2019-01",
                end_date="Present",
                is_current=True,
                source_experience_ids=[str(uuid.uuid4())],
                bullets=[DedupedBullet(
                    id=str(uuid.uuid4()), content="Launched onboarding", representative_bullet_id=BULLET_A,
                    supporting_bullet_ids=[BULLET_A], source_ids=[BULLET_A], source_count=1,
                    average_similarity=1.0, embedding=bullet_embedding,
                )],
            )],
            skills=[CanonicalSkillRecord(
                id=str(uuid.uuid4()), controlled_key="python", label="Python", category="Languages",
                source_skill_ids=[str(uuid.uuid4())], source_count=2, weight=2,
            )],
        )

    @pytest.mark.asyncio
    async def test_replaces_rows_in_one_transaction(self):
        db = _mock_session()
        user_id = uuid.uuid4()

        with patch("profile_canon.services.canonicalizer.embed_texts", new_callable=AsyncMock) as mock_embed:
            await _persist_canonical_profile(db, user_id, self._profile([0.1, 0.2]))

        mock_embed.assert_not_called()
        assert db.execute.await_count == 3  # one delete per canonical table
        db.flush.assert_awaited_once()
        db.commit.assert_awaited_once()

        added = [call.args[0] for call in db.add.call_args_list]
        [bullet_row] = [r for r in added if isinstance(r, CanonicalExperienceBullet)]
        assert bullet_row.position == 0
        assert bullet_row.user_id == user_id
        assert bullet_row.source_bullet_ids == [uuid.UUID(BULLET_A)]
        assert bullet_row.embedding == [0.1, 0.2]

        batches = [row for call in db.add_all.call_args_list for row in call.args[0]]
        assert sum(isinstance(r, CanonicalExperience) for r in batches) == 1
        assert sum(isinstance(r, CanonicalSkill) for r in batches) == 1

    @pytest.mark.asyncio
    async def test_missing_embedding_is_backfilled(self):
        db = _mock_session()

        with patch(
            "profile_canon.services.canonicalizer.embed_texts",
            new_callable=AsyncMock,
            return_value=[[0.3, 0.4]],
        ) as mock_embed:
            await _persist_canonical_profile(db, uuid.uuid4(), self._profile(None))

        mock_embed.assert_awaited_once_with(["Launched onboarding"])
        [bullet_row] = [call.args[0] for call in db.add.call_args_list]
        assert bullet_row.embedding == [0.3, 0.4]

    @pytest.mark.asyncio
    async def test_backfill_failure_stores_null_embedding(self):
        db = _mock_session()

        with patch(
            "profile_canon.services.canonicalizer.embed_texts",
            new_callable=AsyncMock,
            side_effect=RuntimeError("embedding service down"),
        ):
            await _persist_canonical_profile(db, uuid.uuid4(), self._profile(None))

        [bullet_row] = [call.args[0] for call in db.add.call_args_list]
        assert bullet_row.embedding is None
        db.commit.assert_awaited_once()


class TestCanonicalizeProfile:
    @pytest.mark.asyncio
    async def test_builds_and_persists(self, acme_experiences, failing_embed):
        db = _mock_session()
        user_id = uuid.uuid4()

        fetch = AsyncMock(return_value=(acme_experiences, []))
        persist = AsyncMock()
        with patch("profile_canon.services.canonicalizer._fetch_raw_profile", fetch), \
                patch("profile_canon.services.canonicalizer._persist_canonical_profile", persist), \
                patch("profile_canon.services.bullet_dedupe.embed_text", failing_embed):
            profile = await canonicalize_profile(db, user_id)

        assert len(profile.experiences) == 1
        assert profile.skills == []
        persist.assert_awaited_once_with(db, user_id, profile)

    @pytest.mark.asyncio
    async def test_database_error_rolls_back(self):
        db = _mock_session()

        with patch(
            "profile_canon.services.canonicalizer._fetch_raw_profile",
            new_callable=AsyncMock,
            side_effect=OperationalError("SELECT 1", {}, Exception("connection lost")),
        ):
            with pytest.raises(CanonicalizationError):
                await canonicalize_profile(db, uuid.uuid4())

        db.rollback.assert_awaited_once()
