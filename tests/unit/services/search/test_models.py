"""
Unit tests for search domain models.
"""

import math

from src.services.search.models import (
    BranchResult,
    CandidateSource,
    FailureKind,
    FilterSet,
    SearchThresholds,
    clamp_score,
)
from tests.helpers import make_candidate


class TestClampScore:
    def test_bounds(self) -> None:
        assert clamp_score(1.3) == 1.0
        assert clamp_score(-2) == 0.0
        assert clamp_score("0.4") == 0.4

    def test_garbage_is_zero(self) -> None:
        assert clamp_score(None) == 0.0
        assert clamp_score("n/a") == 0.0
        assert clamp_score(math.nan) == 0.0


class TestFilterSet:
    def test_empty(self) -> None:
        assert FilterSet().is_empty()
        assert not FilterSet(keywords=["bail"]).is_empty()

    def test_search_params_copy_keywords(self) -> None:
        filters = FilterSet(keywords=["bail"])
        params = filters.to_search_params("ws")
        params["keywords"].append("parole")
        assert filters.keywords == ["bail"]


class TestCandidate:
    def test_to_dict_flattens_source(self) -> None:
        data = make_candidate("d1", source=CandidateSource.HYBRID).to_dict()
        assert data["source"] == "hybrid"
        assert data["reranker_score"] == 0.5

    def test_display_title_falls_back_to_metadata(self) -> None:
        candidate = make_candidate("d1", title="", metadata={"title": "A v. B", "court": "SC"})
        assert candidate.display_title == "A v. B"
        assert candidate.court == "SC"


class TestResults:
    def test_candidate_limit(self) -> None:
        assert SearchThresholds(top_n=5, candidate_multiplier=3).candidate_limit == 15

    def test_branch_result_ok(self) -> None:
        assert BranchResult("vector").ok
        assert not BranchResult("vector", failure=FailureKind.SOURCE_UNAVAILABLE).ok
