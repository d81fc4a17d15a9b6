"""Content signals for résumé bullets: metrics, tool and regulatory keywords."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

METRIC_RE = re.compile(
    r"(?:\d{1,3}(?:,\d{3})*(?:\.\d+)?|\d+(?:\.\d+)?)"
    r"(?:\s?(?:%|percent|pts?|x|k|m|b|mm|bn|\$|k\+|m\+|b\+))"
    r"|[$€£]\s?\d"
    r"|\b(?:double[sd]?|tripled|quadrupled)\b",
    re.IGNORECASE,
)

NUMERIC_TOKEN_RE = re.compile(r"[$€£]?\d[\d,]*(?:\.\d+)?%?")
_TOKEN_STRIP_RE = re.compile(r"[$€£%,\s]")

TOOL_KEYWORDS = [
    "sql",
    "python",
    "tableau",
    "lookml",
    "snowflake",
    "dbt",
    "bigquery",
    "airflow",
    "looker",
    "superset",
    "power bi",
    "excel",
    "jira",
    "asana",
    "sap",
    "salesforce",
    "netsuite",
    "segment",
    "mixpanel",
    "redshift",
    "fraud",
    "aml",
    "kpi",
    "okr",
    "api",
    "rest",
    "graphql",
]

REGULATORY_KEYWORDS = [
    "fcra",
    "reg z",
    "regulation z",
    "reg e",
    "nacha",
    "bsa",
    "aml",
    "kyc",
    "ofac",
    "sox",
    "gdpr",
    "ccpa",
]

METRIC_BOOST = 5
MAX_TOOL_BOOST = 3
MAX_REGULATORY_BOOST = 2


def _keyword_patterns(keywords: list[str]) -> list[tuple[str, re.Pattern[str]]]:
    return [
        (kw, re.compile(rf"\b{re.escape(kw)}\b", re.IGNORECASE))
        for kw in keywords
        if kw
    ]


_TOOL_PATTERNS = _keyword_patterns(TOOL_KEYWORDS)
_REGULATORY_PATTERNS = _keyword_patterns(REGULATORY_KEYWORDS)


@dataclass
class ContentAnalysis:
    boost: float = 0
    has_metric: bool = False
    tool_hits: list[str] = field(default_factory=list)
    regulatory_hits: list[str] = field(default_factory=list)
    numeric_tokens: list[str] = field(default_factory=list)


def collect_keyword_hits(content: str, patterns: list[tuple[str, re.Pattern[str]]]) -> list[str]:
    """Return every keyword whose whole-word pattern occurs in *content*."""
    return [kw for kw, pattern in patterns if pattern.search(content)]


def extract_numeric_tokens(content: str) -> list[str]:
    """Extract numbers with currency, percent signs and separators stripped.

    ``"Cut $1,200 of spend by 15%"`` → ``["1200", "15"]``.
    """
    if not content:
        return []
    tokens = []
    for match in NUMERIC_TOKEN_RE.findall(content):
        token = _TOKEN_STRIP_RE.sub("", match).lower()
        if token:
            tokens.append(token)
    return tokens


def analyze_bullet_content(content: str) -> ContentAnalysis:
    """Score a bullet's text: quantified results first, then tool/regulatory coverage."""
    if not content:
        return ContentAnalysis()

    normalized = content.lower()
    has_metric = METRIC_RE.search(content) is not None
    tool_hits = collect_keyword_hits(normalized, _TOOL_PATTERNS)
    regulatory_hits = collect_keyword_hits(normalized, _REGULATORY_PATTERNS)

    boost = (
        (METRIC_BOOST if has_metric else 0)
        + min(MAX_TOOL_BOOST, len(tool_hits))
        + min(MAX_REGULATORY_BOOST, len(regulatory_hits))
    )

    return ContentAnalysis(
        boost=boost,
        has_metric=has_metric,
        tool_hits=tool_hits,
        regulatory_hits=regulatory_hits,
        numeric_tokens=extract_numeric_tokens(content),
    )
