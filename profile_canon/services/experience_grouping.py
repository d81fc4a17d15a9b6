"""Pure helpers for grouping raw experiences into canonical experiences.

Résumé parsers emit dates as free text ("2021", "2021-03", "Mar 2021",
"Present"), companies with or without corporate suffixes, and titles with
seniority and department decorations. Everything here normalizes those so
that the same job seen in several uploads lands in one group.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from profile_canon.config import get_settings
from profile_canon.services.bullet_dedupe import BulletCandidate

FAR_FUTURE = date(9999, 12, 31)
ADJACENT_RANGE_WINDOW = timedelta(days=45)

PLACEHOLDER_COMPANY_PATTERNS = [
    re.compile(r"company name", re.IGNORECASE),
    re.compile(r"your company", re.IGNORECASE),
    re.compile(r"sample company", re.IGNORECASE),
    re.compile(r"organization", re.IGNORECASE),
    re.compile(r"^n/?a$", re.IGNORECASE),
]

PLACEHOLDER_DATE_PATTERNS = [
    re.compile(r"Y{4}", re.IGNORECASE),
    re.compile(r"M{2}", re.IGNORECASE),
    re.compile(r"X{2,}", re.IGNORECASE),
    re.compile(r"not provided", re.IGNORECASE),
]

_COMPANY_SUFFIX_RE = re.compile(
    r"\b(inc|llc|corp|co|ltd|limited|company|financial|services|solutions|group"
    r"|holdings|technologies|systems)\b"
)
_YEAR_RE = re.compile(r"^\d{4}$")
_YEAR_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_PRESENT_RE = re.compile(r"present", re.IGNORECASE)
_DATE_FORMATS = ("%b %Y", "%B %Y", "%m/%Y", "%m/%d/%Y", "%b. %Y")

_TITLE_SEPARATOR_RE = re.compile(r"[;–—|]")
_DEPARTMENT_SUFFIX_RE = re.compile(r"\s*-\s*(department|division|team|group).*$", re.IGNORECASE)
_SENIORITY_RE = re.compile(
    r"\b(i{1,3}|iv|v|vi|senior|sr|junior|jr|lead|principal|staff|associate|assistant"
    r"|intern|head of|director of|vp of|chief|1|2|3)\b",
    re.IGNORECASE,
)
GENERIC_TITLE_WORDS = {
    "manager", "analyst", "engineer", "developer", "specialist", "coordinator",
    "administrator", "consultant", "officer", "executive", "representative",
}


@dataclass
class ExperienceRecord:
    id: str
    company: str | None = None
    title: str | None = None
    location: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    is_current: bool = False
    bullets: list[BulletCandidate] = field(default_factory=list)


@dataclass
class DateRange:
    start: date | None
    end: date | None


# ── Dates ──────────────────────────────────────────────────────────────

def is_present(value: str | None) -> bool:
    return bool(value) and _PRESENT_RE.search(value.strip()) is not None


def parse_date(value: str | None) -> date | None:
    """Parse a résumé date string; "Present" maps to FAR_FUTURE."""
    if not value:
        return None
    value = value.strip()
    if is_present(value):
        return FAR_FUTURE
    if _YEAR_RE.match(value):
        return date(int(value), 1, 1)
    if _YEAR_MONTH_RE.match(value):
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date_string(value: str | None) -> str | None:
    """Render a date as ``YYYY`` or ``YYYY-MM``; unparseable text is returned as-is."""
    if not value:
        return None
    if is_present(value):
        return "Present"
    if _YEAR_RE.match(value) or _YEAR_MONTH_RE.match(value):
        return value
    parsed = parse_date(value)
    if parsed is None:
        return value
    return f"{parsed.year}-{parsed.month:02d}"


def build_date_range(experience: ExperienceRecord) -> DateRange:
    start = parse_date(experience.start_date)
    end = parse_date(experience.end_date)
    if experience.is_current or is_present(experience.end_date):
        end = FAR_FUTURE
    return DateRange(start=start, end=end)


def ranges_overlap_or_adjacent(a: DateRange, b: DateRange) -> bool:
    """True when the ranges overlap or one ends within ~45 days of the other starting."""
    if a.start is None or b.start is None:
        return True

    end_a = a.end or FAR_FUTURE
    end_b = b.end or FAR_FUTURE
    if a.start <= end_b and b.start <= end_a:
        return True

    gap_ab = abs(end_a - b.start)
    gap_ba = abs(end_b - a.start)
    return gap_ab <= ADJACENT_RANGE_WINDOW or gap_ba <= ADJACENT_RANGE_WINDOW


def choose_earliest(a: date | None, b: date | None) -> date | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def choose_latest(a: date | None, b: date | None) -> date | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _dates(experiences: list[ExperienceRecord], attr: str) -> list[date]:
    parsed = (parse_date(getattr(e, attr)) for e in experiences)
    return [d for d in parsed if d is not None]


def earliest_start_date(experiences: list[ExperienceRecord]) -> date | None:
    starts = _dates(experiences, "start_date")
    return min(starts) if starts else None


def latest_end_date(experiences: list[ExperienceRecord]) -> date | None:
    ends = _dates(experiences, "end_date")
    return max(ends) if ends else None


def has_current(experiences: list[ExperienceRecord]) -> bool:
    return any(e.is_current or is_present(e.end_date) for e in experiences)


def resolve_end_date(experiences: list[ExperienceRecord]) -> str | None:
    if has_current(experiences):
        return "Present"
    latest = latest_end_date(experiences)
    return normalize_date_string(latest.isoformat() if latest else None)


def months_between(start: date, end: date) -> int:
    """Inclusive month count between two dates (at least 1)."""
    start, end = min(start, end), max(start, end)
    total = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        total -= 1
    return max(1, total + 1)


def experience_duration_months(
    experiences: list[ExperienceRecord],
    today: date | None = None,
) -> int | None:
    earliest = earliest_start_date(experiences)
    if earliest is None:
        return None
    if has_current(experiences):
        end = today or date.today()
    else:
        end = latest_end_date(experiences) or earliest
    return months_between(earliest, end)


# ── Companies and titles ───────────────────────────────────────────────

def _matches_any(value: str | None, patterns: list[re.Pattern[str]]) -> bool:
    if not value:
        return False
    return any(p.search(value.strip()) for p in patterns)


def normalize_company(company: str | None) -> tuple[str, str] | None:
    """Return ``(normalized, display)`` or None for empty/placeholder companies."""
    if not company or not company.strip():
        return None
    display = company.strip()
    if _matches_any(display, PLACEHOLDER_COMPANY_PATTERNS):
        return None

    normalized = re.sub(r"[,.]", " ", display.lower())
    normalized = _COMPANY_SUFFIX_RE.sub("", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized, display


def _core_title(title: str) -> str:
    core = _TITLE_SEPARATOR_RE.split(title)[0]
    core = _DEPARTMENT_SUFFIX_RE.sub("", core).strip()
    return core or title


def _normalize_title(title: str) -> str:
    normalized = re.sub(r"[,()]", " ", title.lower())
    normalized = _SENIORITY_RE.sub("", normalized)
    return re.sub(r"\s+", " ", normalized).strip()


def titles_are_similar(title_a: str | None, title_b: str | None) -> bool:
    """Same role modulo seniority ("PM" vs "Senior PM"); different roles stay apart."""
    if not title_a or not title_b:
        return False

    core_a = _normalize_title(_core_title(title_a))
    core_b = _normalize_title(_core_title(title_b))

    if core_a == core_b:
        return True
    if core_a in core_b or core_b in core_a:
        return True

    words_a = {w for w in core_a.split(" ") if len(w) > 2 and w not in GENERIC_TITLE_WORDS}
    words_b = {w for w in core_b.split(" ") if len(w) > 2 and w not in GENERIC_TITLE_WORDS}
    if not words_a or not words_b:
        return False

    shared = len(words_a & words_b)
    return shared / min(len(words_a), len(words_b)) > 0.5


def build_title_progression(experiences: list[ExperienceRecord]) -> list[str]:
    """Distinct titles, most recently started first."""
    ordered = sorted(
        experiences,
        key=lambda e: parse_date(e.start_date) or date.min,
        reverse=True,
    )
    titles = (e.title.strip() for e in ordered if e.title and e.title.strip())
    return list(dict.fromkeys(titles))


# ── Filtering and budgets ──────────────────────────────────────────────

def has_placeholder_dates(experience: ExperienceRecord) -> bool:
    start = (experience.start_date or "").strip()
    end = (experience.end_date or "").strip()

    start_usable = bool(start) and not _matches_any(start, PLACEHOLDER_DATE_PATTERNS)
    end_usable = bool(end) and not _matches_any(end, PLACEHOLDER_DATE_PATTERNS)
    current = experience.is_current or is_present(end) or (not end and start_usable)

    return not (start_usable or end_usable or current)


def should_skip_experience(experience: ExperienceRecord) -> bool:
    """Skip rows with no identity or with nothing but template dates."""
    title = (experience.title or "").strip()
    company = (experience.company or "").strip()
    company_is_placeholder = bool(company) and _matches_any(company, PLACEHOLDER_COMPANY_PATTERNS)

    if not title and not (company and not company_is_placeholder):
        return True
    return has_placeholder_dates(experience)


_BUDGET_BY_MONTHS = [(60, 24), (48, 20), (36, 16), (24, 12), (12, 8), (6, 5)]


def calculate_bullet_budget(
    experiences: list[ExperienceRecord],
    candidate_count: int,
    today: date | None = None,
) -> int:
    """How many canonical bullets a group earns, scaled by tenure."""
    if not candidate_count:
        return 0

    max_bullets = get_settings().max_canonical_bullets
    duration = experience_duration_months(experiences, today)
    if not duration:
        return max(1, min(candidate_count, max_bullets))

    budget = next((b for months, b in _BUDGET_BY_MONTHS if duration >= months), 3)
    return max(1, min(candidate_count, budget, max_bullets))
