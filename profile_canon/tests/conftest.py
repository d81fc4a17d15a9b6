"""Shared fixtures for service tests."""

from __future__ import annotations

import os

# Settings validate required secrets on first use; tests never talk to these services.
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://localhost/test")
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import pytest  # noqa: E402

from profile_canon.services.bullet_dedupe import BulletCandidate  # noqa: E402
from profile_canon.services.experience_grouping import ExperienceRecord  # noqa: E402


@pytest.fixture
def failing_embed():
    """An embed function that must never be reached."""
    async def embed(text: str) -> list[float]:
        raise AssertionError(f"unexpected embedding call for {text!r}")
    return embed


@pytest.fixture
def duplicate_bullets() -> list[BulletCandidate]:
    """Two phrasings of the same achievement with identical stored embeddings."""
    return [
        BulletCandidate(id="b-led", content="Led a team of 5 engineers to ship X", source_count=1, embedding=[0.2, 0.4, 0.1]),
        BulletCandidate(id="b-managed", content="Managed 5 engineers shipping X", source_count=2, embedding=[0.2, 0.4, 0.1]),
    ]


@pytest.fixture
def acme_experiences() -> list[ExperienceRecord]:
    """The same PM role at Acme, uploaded twice with a promotion in between."""
    return [
        ExperienceRecord(
            id="11111111-1111-1111-1111-111111111111",
            company="Acme",
            title="Senior Product Manager",
            location="London, UK",
            start_date="2020-07",
            end_date="Present",
            is_current=True,
            bullets=[
                BulletCandidate(id="aaaaaaaa-0000-0000-0000-000000000001", content="Launched the new onboarding flow", embedding=[1.0, 0.0]),
                BulletCandidate(id="aaaaaaaa-0000-0000-0000-000000000002", content="Ran pricing experiments across 3 markets", embedding=[0.0, 1.0]),
            ],
        ),
        ExperienceRecord(
            id="22222222-2222-2222-2222-222222222222",
            company="Acme, Inc.",
            title="Product Manager",
            location="Remote",
            start_date="2019-01",
            end_date="2020-06",
            bullets=[
                BulletCandidate(id="aaaaaaaa-0000-0000-0000-000000000003", content="Shipped the onboarding flow redesign", embedding="{1.0,0.0}"),
            ],
        ),
    ]
