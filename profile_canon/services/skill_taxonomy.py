"""Fold raw skill names onto a small controlled taxonomy."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

from profile_canon.config import get_settings


@dataclass(frozen=True)
class TaxonomyEntry:
    key: str
    label: str
    category: str
    variants: tuple[str, ...]


CONTROLLED_SKILL_TAXONOMY = [
    TaxonomyEntry("typescript", "TypeScript", "Languages", ("typescript", "ts")),
    TaxonomyEntry("javascript", "JavaScript", "Languages", ("javascript", "js")),
    TaxonomyEntry("python", "Python", "Languages", ("python",)),
    TaxonomyEntry("java", "Java", "Languages", ("java",)),
    TaxonomyEntry("golang", "Go", "Languages", ("go", "golang")),
    TaxonomyEntry("react", "React", "Frontend", ("react", "react.js", "reactjs")),
    TaxonomyEntry("nextjs", "Next.js", "Frontend", ("next.js", "nextjs", "next")),
    TaxonomyEntry("nodejs", "Node.js", "Backend", ("node", "node.js", "nodejs")),
    TaxonomyEntry("express", "Express", "Backend", ("express", "express.js")),
    TaxonomyEntry("aws", "AWS", "Cloud", ("aws", "amazon web services")),
    TaxonomyEntry("gcp", "Google Cloud", "Cloud", ("gcp", "google cloud", "google cloud platform")),
    TaxonomyEntry("azure", "Azure", "Cloud", ("azure", "microsoft azure")),
    TaxonomyEntry("docker", "Docker", "DevOps", ("docker",)),
    TaxonomyEntry("kubernetes", "Kubernetes", "DevOps", ("kubernetes", "k8s")),
    TaxonomyEntry("postgresql", "PostgreSQL", "Databases", ("postgresql", "postgres", "postgres sql")),
    TaxonomyEntry("mysql", "MySQL", "Databases", ("mysql",)),
    TaxonomyEntry("sql", "SQL", "Databases", ("sql",)),
    TaxonomyEntry("graphql", "GraphQL", "APIs", ("graphql",)),
    TaxonomyEntry("rest", "REST APIs", "APIs", ("rest", "rest api", "restful api")),
    TaxonomyEntry("ai-ml", "AI / ML", "AI", ("ai", "ml", "machine learning", "artificial intelligence")),
    TaxonomyEntry("llm", "LLM Prompting", "AI", ("llm", "prompt engineering", "generative ai")),
]


@dataclass
class SkillRecord:
    id: str
    name: str
    source_count: int | None = None


@dataclass
class CanonicalSkillRecord:
    id: str
    controlled_key: str
    label: str
    category: str
    source_skill_ids: list[str] = field(default_factory=list)
    source_count: int = 0
    weight: int = 0


def normalize_skill_name(value: str) -> str:
    """Lower-case and reduce to ``[a-z0-9+]`` words."""
    normalized = value.lower().replace("\u2022", " ")
    normalized = re.sub(r"[^a-z0-9+]", " ", normalized)
    return re.sub(r"\s+", " ", normalized).strip()


# Variants are indexed in their normalized form too ("node.js" -> "node js").
_VARIANT_INDEX = {
    key: entry
    for entry in CONTROLLED_SKILL_TAXONOMY
    for variant in entry.variants
    for key in (variant, normalize_skill_name(variant))
}


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value).strip("-")


def to_title_case(value: str) -> str:
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:], value)


def lookup_taxonomy(normalized: str) -> TaxonomyEntry | None:
    return _VARIANT_INDEX.get(normalized)


def build_canonical_skills(
    skills: list[SkillRecord],
    limit: int | None = None,
) -> list[CanonicalSkillRecord]:
    """Aggregate raw skills by controlled key, heaviest first."""
    if not skills:
        return []
    if limit is None:
        limit = get_settings().max_canonical_skills

    aggregates: dict[str, CanonicalSkillRecord] = {}
    for skill in skills:
        normalized = normalize_skill_name(skill.name or "")
        if not normalized:
            continue

        entry = lookup_taxonomy(normalized)
        key = entry.key if entry else slugify(normalized)
        aggregate = aggregates.get(key)
        if aggregate is None:
            aggregate = CanonicalSkillRecord(
                id=str(uuid.uuid4()),
                controlled_key=key,
                label=entry.label if entry else to_title_case(normalized),
                category=entry.category if entry else "Other",
            )
            aggregates[key] = aggregate

        if skill.id not in aggregate.source_skill_ids:
            aggregate.source_skill_ids.append(skill.id)
        aggregate.source_count += skill.source_count if skill.source_count is not None else 1

    for aggregate in aggregates.values():
        aggregate.weight = aggregate.source_count

    return sorted(aggregates.values(), key=lambda s: s.weight, reverse=True)[:limit]
