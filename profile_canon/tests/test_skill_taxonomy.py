"""Tests for skill folding onto the controlled taxonomy."""

from __future__ import annotations

from profile_canon.services.skill_taxonomy import (
    SkillRecord,
    build_canonical_skills,
    lookup_taxonomy,
    normalize_skill_name,
    slugify,
    to_title_case,
)


class TestNormalization:
    def test_punctuation_and_bullets(self):
        assert normalize_skill_name("• Node.js ") == "node js"

    def test_plus_kept(self):
        assert normalize_skill_name("C++") == "c++"

    def test_slugify(self):
        assert slugify("c++ templates") == "c-templates"

    def test_title_case(self):
        assert to_title_case("product discovery") == "Product Discovery"

    def test_lookup(self):
        assert lookup_taxonomy("k8s").key == "kubernetes"
        assert lookup_taxonomy("underwater basket weaving") is None

    def test_dotted_variants_survive_normalization(self):
        [skill] = build_canonical_skills([SkillRecord(id="s1", name="Node.js"), SkillRecord(id="s2", name="node")])
        assert skill.controlled_key == "nodejs"
        assert skill.source_count == 2


class TestBuildCanonicalSkills:
    def test_empty(self):
        assert build_canonical_skills([]) == []

    def test_variants_fold_together(self):
        skills = [
            SkillRecord(id="s1", name="Postgres", source_count=2),
            SkillRecord(id="s2", name="PostgreSQL"),
            SkillRecord(id="s3", name="postgres sql", source_count=1),
        ]
        [skill] = build_canonical_skills(skills)
        assert skill.controlled_key == "postgresql"
        assert skill.label == "PostgreSQL"
        assert skill.category == "Databases"
        assert skill.source_skill_ids == ["s1", "s2", "s3"]
        assert skill.source_count == 4
        assert skill.weight == 4

    def test_unknown_skill_falls_back_to_slug(self):
        [skill] = build_canonical_skills([SkillRecord(id="s1", name="Product Discovery")])
        assert skill.controlled_key == "product-discovery"
        assert skill.label == "Product Discovery"
        assert skill.category == "Other"

    def test_blank_names_ignored(self):
        assert build_canonical_skills([SkillRecord(id="s1", name=" • ")]) == []

    def test_sorted_by_weight_and_limited(self):
        skills = [
            SkillRecord(id="a", name="Docker", source_count=1),
            SkillRecord(id="b", name="Python", source_count=5),
            SkillRecord(id="c", name="AWS", source_count=3),
        ]
        result = build_canonical_skills(skills, limit=2)
        assert [s.controlled_key for s in result] == ["python", "aws"]
