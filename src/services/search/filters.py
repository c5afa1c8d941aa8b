"""
Query → structured metadata filters.

Parses a free-text legal query for court, year (or year range), case type,
jurisdiction and bench type. Within each category the first matching rule
wins, so rules are listed most specific first. Whatever text is left after
removing the matched phrases becomes the residual full-text filter.
"""

import re

from src.services.search.models import FilterSet

# Residual text must be longer than this to be used for full-text search
RESIDUAL_MIN_LENGTH = 5

# Year ranges are tried before single years
_YEAR_RANGE_PATTERNS = [
    # "from 2010 to 2020"
    re.compile(r"\bfrom\s+(19\d{2}|20\d{2})\s+to\s+(19\d{2}|20\d{2})\b", re.IGNORECASE),
    # "between 2010 and 2020"
    re.compile(r"\bbetween\s+(19\d{2}|20\d{2})\s+and\s+(19\d{2}|20\d{2})\b", re.IGNORECASE),
    # "2010-2020", "2010–2020" (en dash)
    re.compile(r"\b(19\d{2}|20\d{2})\s*[-–]\s*(19\d{2}|20\d{2})\b"),
]
_SINGLE_YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")

# (pattern, value). value=None means "build from the captured court seat".
_COURT_RULES: list[tuple[re.Pattern, str | None]] = [
    (re.compile(r"\bdelhi high court\b", re.IGNORECASE), "High Court of Delhi"),
    (re.compile(r"\bbombay high court\b", re.IGNORECASE), "High Court of Bombay"),
    (re.compile(r"\bcalcutta high court\b", re.IGNORECASE), "High Court of Calcutta"),
    (re.compile(r"\bmadras high court\b", re.IGNORECASE), "High Court of Madras"),
    (re.compile(r"\ballahabad high court\b", re.IGNORECASE), "High Court of Allahabad"),
    (re.compile(r"\bkarnataka high court\b", re.IGNORECASE), "High Court of Karnataka"),
    (re.compile(r"\bkerala high court\b", re.IGNORECASE), "High Court of Kerala"),
    (re.compile(r"\bgujarat high court\b", re.IGNORECASE), "High Court of Gujarat"),
    (re.compile(r"\bhigh court of ([a-z]+)\b", re.IGNORECASE), None),
    (re.compile(r"\bsupreme court(?: of india)?\b", re.IGNORECASE), "Supreme Court of India"),
]

_CASE_TYPE_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\bcriminal appeal\b", re.IGNORECASE), "Criminal Appeal"),
    (re.compile(r"\bcivil appeal\b", re.IGNORECASE), "Civil Appeal"),
    (re.compile(r"\bwrit petition\b", re.IGNORECASE), "Writ Petition"),
    (re.compile(r"\bspecial leave petition\b|\bslp\b", re.IGNORECASE), "Special Leave Petition"),
    (re.compile(r"\bpublic interest litigation\b|\bpil\b", re.IGNORECASE), "PIL"),
    (re.compile(r"\bbail\b", re.IGNORECASE), "Bail Application"),
]

_JURISDICTION_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\bcriminal\b", re.IGNORECASE), "Criminal"),
    (re.compile(r"\bcivil\b", re.IGNORECASE), "Civil"),
]

_BENCH_TYPE_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\bconstitution(?:al)? bench\b", re.IGNORECASE), "Constitution Bench"),
    (re.compile(r"\bdivision bench\b", re.IGNORECASE), "Division Bench"),
    (re.compile(r"\bfull bench\b", re.IGNORECASE), "Full Bench"),
]


def _first_match(query: str, rules: list) -> tuple[re.Match, str | None] | None:
    for pattern, value in rules:
        match = pattern.search(query)
        if match:
            return match, value
    return None


def _strip_spans(query: str, spans: list[tuple[int, int]]) -> str:
    """Remove (possibly overlapping) character spans and collapse whitespace."""
    kept: list[str] = []
    cursor = 0
    for start, end in sorted(spans):
        if start > cursor:
            kept.append(query[cursor:start])
        cursor = max(cursor, end)
    kept.append(query[cursor:])
    return re.sub(r"\s+", " ", " ".join(kept)).strip()


def extract_filters(query: str) -> FilterSet:
    """Extract metadata filters from a natural-language query.

    Never raises; categories that do not match are simply left unset.

    Example:
        "Supreme Court bail 2019 murder conviction" →
        court="Supreme Court of India", year=2019,
        case_type="Bail Application", fulltext="murder conviction"
    """
    filters = FilterSet()
    if not query or not query.strip():
        return filters

    spans: list[tuple[int, int]] = []

    # Year: range first, then a single year
    for pattern in _YEAR_RANGE_PATTERNS:
        match = pattern.search(query)
        if match:
            y1, y2 = int(match.group(1)), int(match.group(2))
            filters.year_from, filters.year_to = min(y1, y2), max(y1, y2)
            spans.append(match.span())
            break
    else:
        match = _SINGLE_YEAR_RE.search(query)
        if match:
            filters.year = int(match.group(1))
            spans.append(match.span())

    hit = _first_match(query, _COURT_RULES)
    if hit:
        match, value = hit
        filters.court = value or f"High Court of {match.group(1).title()}"
        spans.append(match.span())

    hit = _first_match(query, _CASE_TYPE_RULES)
    if hit:
        match, filters.case_type = hit
        spans.append(match.span())

    hit = _first_match(query, _JURISDICTION_RULES)
    if hit:
        match, filters.jurisdiction = hit
        spans.append(match.span())

    hit = _first_match(query, _BENCH_TYPE_RULES)
    if hit:
        match, filters.bench_type = hit
        spans.append(match.span())

    residual = _strip_spans(query, spans)
    if len(residual) > RESIDUAL_MIN_LENGTH:
        filters.fulltext = residual

    return filters
