"""
Lenient score parsing for LLM-based rerankers.

Models are asked for a fixed-length array of floats but do not always comply.
Each parser tries the structured shape first, then falls back to pulling
decimal numbers out of the raw text. ``None`` means nothing usable was found
and the caller should use neutral scores.
"""

import json
import re

from src.config.logging_config import setup_logger
from src.services.search.models import NEUTRAL_SCORE, clamp_score

logger = setup_logger(__name__)

_BRACKETED_ARRAY_RE = re.compile(r"\[([\d\s.,]+)\]")
_DECIMAL_RE = re.compile(r"\d+\.\d+")
_CODE_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*")
_CODE_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")


def neutral_scores(count: int) -> list[float]:
    return [NEUTRAL_SCORE] * count


def _to_floats(values) -> list[float]:
    out: list[float] = []
    for value in values:
        try:
            out.append(float(value))
        except (TypeError, ValueError):
            continue
    return out


def extract_numeric_scores(text: str, expected_count: int) -> list[float] | None:
    """Fallback: decimal substrings in order, accepted only when exactly *expected_count* are present."""
    numbers = _DECIMAL_RE.findall(text or "")
    if expected_count and len(numbers) == expected_count:
        return [clamp_score(n) for n in numbers]
    return None


def parse_json_scores(content: str, expected_count: int) -> list[float] | None:
    """Parse a ``{"scores": [...]}`` chat completion (a bare JSON array is also accepted)."""
    text = (content or "").strip()
    # Allow markdown code block
    if "```" in text:
        text = _CODE_FENCE_OPEN_RE.sub("", text)
        text = _CODE_FENCE_CLOSE_RE.sub("", text)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Score JSON parsing failed: %s", e)
        parsed = None

    raw = parsed.get("scores") if isinstance(parsed, dict) else parsed
    if isinstance(raw, list):
        scores = _to_floats(raw)
        if len(scores) == expected_count:
            return [clamp_score(s) for s in scores]
        logger.warning("Score array length mismatch: expected %s, got %s", expected_count, len(scores))

    return extract_numeric_scores(text, expected_count)


def parse_bracketed_scores(text: str, expected_count: int) -> list[float] | None:
    """Parse a free-text answer containing ``[0.9, 0.4, ...]``."""
    match = _BRACKETED_ARRAY_RE.search(text or "")
    if match:
        scores = _to_floats(part.strip() for part in match.group(1).split(","))
        if len(scores) == expected_count:
            return [clamp_score(s) for s in scores]
        logger.warning("Bracketed score array length mismatch: expected %s, got %s", expected_count, len(scores))

    return extract_numeric_scores(text, expected_count)
