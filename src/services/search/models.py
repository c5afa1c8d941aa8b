# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hybrid Search Domain Models

Pure data structures with no external dependencies, shared by the filter
extractor, the reranker providers, the fusion engine and the orchestrator.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

# Reranker score used whenever no hosted provider produced a real one
NEUTRAL_SCORE = 0.5


def clamp_score(value: Any) -> float:
    """Coerce *value* to a float in [0, 1]. Non-numeric values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return min(max(number, 0.0), 1.0)


class CandidateSource(str, Enum):
    """Which retrieval source(s) produced a candidate."""

    VECTOR = "vector"
    METADATA = "metadata"
    HYBRID = "hybrid"


class FailureKind(str, Enum):
    """Degradation reasons. None of these escape the public search entry point."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    PROVIDER_MISCONFIGURED = "provider_misconfigured"
    PROVIDER_REQUEST_FAILED = "provider_request_failed"
    SCORE_PARSE_FAILED = "score_parse_failed"
    FUSION_FAILED = "fusion_failed"


@dataclass
class Candidate:
    """One document under consideration for a query."""

    id: str
    vector_score: float = 0.0
    metadata_score: float = 0.0
    reranker_score: float = NEUTRAL_SCORE
    combined_score: float = 0.0
    source: CandidateSource = CandidateSource.VECTOR
    text: str = ""
    title: str = ""
    metadata: dict = field(default_factory=dict)

    # Amount removed by the diversity pass (for score explanation)
    diversity_penalty: float = 0.0
    # Full metadata-store record attached by enrichment
    legal_metadata: dict | None = None

    @property
    def display_title(self) -> str:
        return self.title or str(self.metadata.get("title") or "")

    @property
    def court(self) -> str:
        return str(self.metadata.get("court") or "")

    def to_dict(self) -> dict:
        """Plain-dict view (enum flattened) for serialisation and logging."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["source"] = self.source.value
        return data


@dataclass
class FilterSet:
    """Structured filters derived from (or supplied alongside) a query."""

    court: str | None = None
    year: int | None = None
    year_from: int | None = None
    year_to: int | None = None
    case_type: str | None = None
    jurisdiction: str | None = None
    bench_type: str | None = None
    judge: str | None = None
    citation: str | None = None
    keywords: list[str] = field(default_factory=list)
    fulltext: str | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def to_search_params(self, workspace_id: Any) -> dict:
        """Filter mapping for ``MetadataSearchClient.search``; unset fields are omitted."""
        params: dict[str, Any] = {"workspace_id": workspace_id}
        for f in fields(self):
            value = getattr(self, f.name)
            if value:
                params[f.name] = list(value) if isinstance(value, list) else value
        return params


@dataclass(frozen=True)
class FusionWeights:
    """Linear weights for the three fused signals. Well-formed weights sum to 1."""

    semantic: float = 0.6
    reranker: float = 0.3
    metadata: float = 0.1


@dataclass(frozen=True)
class FusionOptions:
    max_results: int = 10
    diversity_factor: float = 0.1
    use_hosted_reranker: bool = True


@dataclass(frozen=True)
class SearchThresholds:
    similarity_threshold: float = 0.25
    top_n: int = 10
    # Each source is asked for top_n * candidate_multiplier hits
    candidate_multiplier: int = 2

    @property
    def candidate_limit(self) -> int:
        return self.top_n * self.candidate_multiplier


@dataclass(frozen=True)
class WorkspaceContext:
    """The workspace a search is scoped to. ``slug`` is the vector namespace."""

    id: Any
    slug: str


@dataclass(frozen=True)
class BranchResult:
    """Outcome of one retrieval branch: the hits, or the reason there are none."""

    label: str
    items: list = field(default_factory=list)
    failure: FailureKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class ScoreOutcome:
    """Outcome of one provider scoring call. ``scores`` is always the input length."""

    scores: list[float]
    failure: FailureKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None
