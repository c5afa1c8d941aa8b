# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hybrid Fusion Engine

Merges vector-similarity hits and structured-metadata records into one ranked
candidate list:

1. merge by id (vector → ``vector``, metadata → ``metadata``, both → ``hybrid``)
2. score metadata relevance from query/field term overlap plus exact-match boosts
3. optionally ask the hosted reranker for a per-document score
4. combine:  semantic·vector + reranker·rerank + metadata·metadata   (clamped)
5. damp metadata-only hits when the metadata source out-returned the vector source
6. diversity pass: penalise repeated titles and courts, re-sort
7. truncate

Everything except step 3 is synchronous and pure: the same inputs always give
the same scores and the same order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from src.config.logging_config import setup_logger
from src.services.search.models import (
    NEUTRAL_SCORE,
    Candidate,
    CandidateSource,
    FusionOptions,
    FusionWeights,
    clamp_score,
)

if TYPE_CHECKING:
    from src.services.reranker.service import RerankerService

logger = setup_logger(__name__)

# Metadata relevance: base score + up to TERM_OVERLAP_WEIGHT for term overlap
METADATA_BASE_SCORE = 0.5
TERM_OVERLAP_WEIGHT = 0.5
COURT_MATCH_BOOST = 0.15
YEAR_MATCH_BOOST = 0.15
CASE_TYPE_MATCH_BOOST = 0.10
CITATION_MATCH_BOOST = 0.20

TITLE_KEY_LENGTH = 50
COURT_PENALTY_RATIO = 0.5

_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")

# (record key, label) for metadata-only display text
_DISPLAY_FIELDS: tuple[tuple[str, str], ...] = (
    ("title", "Title"),
    ("citation", "Citation"),
    ("court", "Court"),
    ("year", "Year"),
    ("case_type", "Type"),
    ("petitioner", "Petitioner"),
    ("respondent", "Respondent"),
    ("keywords", "Keywords"),
)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------
def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop tokens of two characters or fewer."""
    cleaned = _PUNCT_RE.sub(" ", (text or "").lower())
    return [term for term in cleaned.split() if len(term) > 2]


def normalize_title(title: str) -> str:
    """Key used to detect near-duplicate titles."""
    cleaned = _PUNCT_RE.sub("", (title or "").lower())
    return _WS_RE.sub(" ", cleaned).strip()[:TITLE_KEY_LENGTH]


def _field_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(v) for v in value if v)
    return str(value)


def format_metadata_as_text(record: Mapping) -> str:
    """Readable text for a metadata-only hit, which has no passage text of its own."""
    lines = []
    for key, label in _DISPLAY_FIELDS:
        value = _field_text(record.get(key))
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def _record_id(record: Mapping) -> str | None:
    value = record.get("doc_id") or record.get("docId") or record.get("id")
    return str(value) if value else None


# ---------------------------------------------------------------------------
# Metadata relevance
# ---------------------------------------------------------------------------
def metadata_relevance(record: Mapping, query_terms: Sequence[str]) -> float:
    """Score how well a metadata record matches the query, in [0, 1]."""
    score = METADATA_BASE_SCORE

    searchable_text = " ".join(
        _field_text(record.get(key))
        for key in ("title", "citation", "court", "case_type", "jurisdiction", "keywords")
    )
    metadata_terms = set(tokenize(searchable_text))

    if query_terms:
        matched = sum(1 for term in query_terms if term in metadata_terms)
        score += (matched / len(query_terms)) * TERM_OVERLAP_WEIGHT

    court = _field_text(record.get("court")).lower()
    if court and any(term in court for term in query_terms):
        score += COURT_MATCH_BOOST

    year = record.get("year")
    if year and str(year) in query_terms:
        score += YEAR_MATCH_BOOST

    case_type = _field_text(record.get("case_type")).lower()
    if case_type and any(term in case_type for term in query_terms):
        score += CASE_TYPE_MATCH_BOOST

    citation = _field_text(record.get("citation")).lower()
    if citation and any(term in citation for term in query_terms):
        score += CITATION_MATCH_BOOST

    return min(score, 1.0)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------
def _similarity(value) -> float:
    """Raw similarity as a float; non-numeric or NaN values count as 0."""
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if number != number else number


def candidate_from_vector_hit(hit: Mapping) -> Candidate | None:
    """Build a ``vector`` candidate; hits without an id are unusable."""
    doc_id = hit.get("id") or hit.get("doc_id") or hit.get("docId")
    if not doc_id:
        return None
    metadata = dict(hit.get("metadata") or {})
    score = hit.get("score")
    if score is None:
        score = hit.get("similarity", 0)
    return Candidate(
        id=str(doc_id),
        vector_score=_similarity(score),
        source=CandidateSource.VECTOR,
        text=hit.get("text") or hit.get("content") or "",
        title=hit.get("title") or metadata.get("title") or "",
        metadata=metadata,
    )


def merge_candidates(
    vector_hits: Iterable[Mapping],
    metadata_records: Iterable[Mapping],
    query: str,
) -> dict[str, Candidate]:
    """Merge both sources into one candidate per id (insertion ordered)."""
    query_terms = tokenize(query)
    merged: dict[str, Candidate] = {}

    for hit in vector_hits or []:
        candidate = candidate_from_vector_hit(hit)
        if candidate is None:
            continue
        # Sources return best-first; keep the first occurrence of an id
        merged.setdefault(candidate.id, candidate)

    for record in metadata_records or []:
        doc_id = _record_id(record)
        if not doc_id:
            continue
        relevance = metadata_relevance(record, query_terms)
        existing = merged.get(doc_id)

        if existing is None:
            merged[doc_id] = Candidate(
                id=doc_id,
                vector_score=0.0,
                metadata_score=relevance,
                source=CandidateSource.METADATA,
                text=format_metadata_as_text(record),
                title=record.get("title") or "Untitled",
                metadata=dict(record),
            )
            continue

        existing.metadata_score = max(existing.metadata_score, relevance)
        # Metadata-store fields are the more authoritative ones
        existing.metadata = {**existing.metadata, **record}
        if record.get("title"):
            existing.title = record["title"]
        if existing.source is CandidateSource.VECTOR:
            existing.source = CandidateSource.HYBRID

    return merged


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
def _ranking_key(candidate: Candidate) -> tuple:
    # Ties: higher vector score first, then id for a stable total order
    return (-candidate.combined_score, -candidate.vector_score, candidate.id)


def combined_score(candidate: Candidate, weights: FusionWeights) -> float:
    score = (
        weights.semantic * clamp_score(candidate.vector_score)
        + weights.reranker * clamp_score(candidate.reranker_score)
        + weights.metadata * clamp_score(candidate.metadata_score)
    )
    return clamp_score(score)


def apply_diversity(candidates: Sequence[Candidate], diversity_factor: float) -> list[Candidate]:
    """Penalise repeated titles (full factor) and repeated courts (half factor).

    Walks candidates in score order; penalties only ever lower a score and
    floor at 0. Returns the list re-sorted by the adjusted score.
    """
    ordered = sorted(candidates, key=_ranking_key)
    if diversity_factor <= 0 or len(ordered) <= 1:
        return ordered

    seen_titles: set[str] = set()
    seen_courts: set[str] = set()

    for candidate in ordered:
        title_key = normalize_title(candidate.display_title)
        court_key = candidate.court.strip().lower()

        penalty = 0.0
        if title_key and title_key in seen_titles:
            penalty += diversity_factor
        if court_key and court_key in seen_courts:
            penalty += diversity_factor * COURT_PENALTY_RATIO

        if penalty > 0:
            adjusted = max(0.0, candidate.combined_score - penalty)
            candidate.diversity_penalty = candidate.combined_score - adjusted
            candidate.combined_score = adjusted

        if title_key:
            seen_titles.add(title_key)
        if court_key:
            seen_courts.add(court_key)

    return sorted(ordered, key=_ranking_key)


def rank_candidates(
    candidates: Iterable[Candidate],
    weights: FusionWeights,
    options: FusionOptions,
    metadata_flood: bool = False,
) -> list[Candidate]:
    """Combine scores, damp metadata floods, diversify, sort and truncate.

    Args:
        candidates: Merged candidates with reranker scores already set.
        weights: Fusion weights.
        options: max_results / diversity_factor.
        metadata_flood: True when the metadata source returned more raw hits
                        than the vector source.
    """
    scored: list[Candidate] = []
    for candidate in candidates:
        score = combined_score(candidate, weights)
        if metadata_flood and candidate.source is CandidateSource.METADATA:
            score *= 1 - options.diversity_factor
        candidate.combined_score = clamp_score(score)
        candidate.diversity_penalty = 0.0
        scored.append(candidate)

    diversified = apply_diversity(scored, options.diversity_factor)
    return diversified[: max(options.max_results, 0)]


async def fuse(
    vector_hits: Sequence[Mapping],
    metadata_records: Sequence[Mapping],
    query: str,
    weights: FusionWeights | None = None,
    options: FusionOptions | None = None,
    reranker: RerankerService | None = None,
) -> list[Candidate]:
    """Merge, score and rank both sources' hits for *query*.

    Returns candidates sorted by ``combined_score`` descending, at most
    ``options.max_results`` of them. A failing reranker degrades to neutral
    scores; it never aborts fusion.
    """
    weights = weights or FusionWeights()
    options = options or FusionOptions()
    vector_hits = vector_hits or []
    metadata_records = metadata_records or []

    merged = merge_candidates(vector_hits, metadata_records, query)
    candidates = list(merged.values())

    if candidates and options.use_hosted_reranker and reranker is not None and reranker.is_available():
        scores: dict[str, float] = {}
        try:
            reranked = await reranker.rerank_batch(query, candidates)
            scores = {doc.id: doc.reranker_score for doc in reranked}
            logger.info("Reranker scored %s documents", len(scores))
        except Exception as e:
            logger.error("Hosted reranker failed, using neutral scores: %s", e)
        for candidate in candidates:
            candidate.reranker_score = scores.get(candidate.id, NEUTRAL_SCORE)

    ranked = rank_candidates(
        candidates,
        weights,
        options,
        metadata_flood=len(metadata_records) > len(vector_hits),
    )

    logger.info(
        "Fused %s candidates (vector=%s, metadata=%s) -> %s results",
        len(candidates),
        len(vector_hits),
        len(metadata_records),
        len(ranked),
    )
    logger.info(
        "Scoring: %.0f%% semantic + %.0f%% reranker + %.0f%% metadata",
        weights.semantic * 100,
        weights.reranker * 100,
        weights.metadata * 100,
    )
    return ranked


def explain_scores(results: Sequence[Candidate], weights: FusionWeights | None = None, top_n: int = 3) -> None:
    """Log the score breakdown of the top results (debugging aid)."""
    weights = weights or FusionWeights()
    logger.info("Top %s results explained", min(top_n, len(results)))
    for rank, r in enumerate(results[:top_n], 1):
        logger.info(
            "  [%s] final=%.3f | semantic %.3f -> %.3f | reranker %.3f -> %.3f | metadata %.3f -> %.3f "
            "| diversity -%.3f | source=%s | %s",
            rank,
            r.combined_score,
            clamp_score(r.vector_score),
            clamp_score(r.vector_score) * weights.semantic,
            r.reranker_score,
            r.reranker_score * weights.reranker,
            clamp_score(r.metadata_score),
            clamp_score(r.metadata_score) * weights.metadata,
            r.diversity_penalty,
            r.source.value,
            r.display_title or "N/A",
        )
