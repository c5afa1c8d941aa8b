# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Unit tests for SearchOrchestrator: input validation, concurrent retrieval
with per-branch fault tolerance, fusion fallback, enrichment, stats and
facets.

Source clients are AsyncMocks; no database or network.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import src.services.search.orchestrator as orchestrator_mod
from src.services.reranker.service import RerankerService, RerankerSettings
from src.services.search.models import (
    CandidateSource,
    FailureKind,
    FilterSet,
    FusionOptions,
    SearchThresholds,
    WorkspaceContext,
)
from src.services.search.orchestrator import SearchOrchestrator, create_orchestrator
from tests.helpers import make_metadata_record, make_vector_hit, run

WORKSPACE = WorkspaceContext(id=7, slug="chambers-7")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def vector_client() -> MagicMock:
    client = MagicMock()
    client.similarity_search = AsyncMock(
        return_value=[
            make_vector_hit("d1", score=0.9, title="State v. Sharma"),
            make_vector_hit("d2", score=0.7, title="Union of India v. Rao"),
        ]
    )
    return client


@pytest.fixture()
def metadata_client() -> MagicMock:
    client = MagicMock()
    client.search = AsyncMock(
        return_value=[make_metadata_record("d2", court="Supreme Court of India", year=2019, title="Union of India v. Rao")]
    )
    client.get = AsyncMock(return_value=None)
    client.get_stats = AsyncMock(return_value={"total_judgments": 3})
    client.get_unique_values = AsyncMock(return_value=["High Court of Delhi", "Supreme Court of India"])
    return client


@pytest.fixture()
def orchestrator(vector_client: MagicMock, metadata_client: MagicMock) -> SearchOrchestrator:
    return SearchOrchestrator(
        vector_client=vector_client,
        metadata_client=metadata_client,
        reranker=RerankerService(settings=RerankerSettings(enabled=False)),
        source_timeout=1.0,
        enrichment_timeout=1.0,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class TestValidation:
    def test_empty_query_rejected_before_network(self, orchestrator, vector_client) -> None:
        with pytest.raises(ValueError):
            run(orchestrator.search("   ", WORKSPACE))
        vector_client.similarity_search.assert_not_called()

    def test_missing_workspace_rejected(self, orchestrator, vector_client) -> None:
        with pytest.raises(ValueError):
            run(orchestrator.search("bail", None))
        vector_client.similarity_search.assert_not_called()

    def test_oversize_query_rejected(self, orchestrator) -> None:
        with patch.object(orchestrator_mod.config, "MAX_QUERY_LENGTH", 10):
            with pytest.raises(ValueError):
                run(orchestrator.search("x" * 11, WORKSPACE))


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------
class TestRetrieval:
    def test_hybrid_search_merges_both_sources(self, orchestrator, vector_client, metadata_client) -> None:
        results = run(orchestrator.search("Supreme Court 2019 compensation", WORKSPACE))

        by_id = {r.id: r for r in results}
        assert set(by_id) == {"d1", "d2"}
        assert by_id["d2"].source is CandidateSource.HYBRID
        assert by_id["d1"].source is CandidateSource.VECTOR

        vector_client.similarity_search.assert_awaited_once_with("chambers-7", "Supreme Court 2019 compensation", 0.25, 20)
        filters, limit = metadata_client.search.await_args.args
        assert filters["workspace_id"] == 7
        assert filters["court"] == "Supreme Court of India"
        assert filters["year"] == 2019
        assert filters["fulltext"] == "compensation"
        assert limit == 20

    def test_metadata_branch_skipped_without_filters(self, orchestrator, metadata_client) -> None:
        run(orchestrator.search("tort", WORKSPACE))
        metadata_client.search.assert_not_called()

    def test_explicit_filters_override_extraction(self, orchestrator, metadata_client) -> None:
        run(orchestrator.search("Supreme Court 2019", WORKSPACE, filters=FilterSet(court="High Court of Delhi")))
        filters, _ = metadata_client.search.await_args.args
        assert filters == {"workspace_id": 7, "court": "High Court of Delhi"}

    def test_empty_explicit_filters_fall_back_to_extraction(self, orchestrator, metadata_client) -> None:
        run(orchestrator.search("Supreme Court 2019", WORKSPACE, filters=FilterSet()))
        filters, _ = metadata_client.search.await_args.args
        assert filters["court"] == "Supreme Court of India"

    def test_thresholds_drive_candidate_limit(self, orchestrator, vector_client) -> None:
        thresholds = SearchThresholds(similarity_threshold=0.4, top_n=3, candidate_multiplier=3)
        results = run(orchestrator.search("bail", WORKSPACE, thresholds=thresholds))
        vector_client.similarity_search.assert_awaited_once_with("chambers-7", "bail", 0.4, 9)
        assert len(results) <= 3

    def test_vector_failure_keeps_metadata_results(self, orchestrator, vector_client) -> None:
        vector_client.similarity_search.side_effect = ConnectionError("vector store down")
        results = run(orchestrator.search("Supreme Court 2019", WORKSPACE))
        assert [r.id for r in results] == ["d2"]
        assert results[0].source is CandidateSource.METADATA

    def test_metadata_failure_keeps_vector_results(self, orchestrator, metadata_client) -> None:
        metadata_client.search.side_effect = RuntimeError("postgrest error")
        results = run(orchestrator.search("Supreme Court 2019", WORKSPACE))
        assert {r.id for r in results} == {"d1", "d2"}
        assert all(r.source is CandidateSource.VECTOR for r in results)

    def test_both_sources_failing_gives_empty_list(self, orchestrator, vector_client, metadata_client) -> None:
        vector_client.similarity_search.side_effect = ConnectionError("down")
        metadata_client.search.side_effect = ConnectionError("down")
        assert run(orchestrator.search("Supreme Court 2019", WORKSPACE)) == []

    def test_slow_branch_times_out_as_unavailable(self, vector_client, metadata_client) -> None:
        async def slow_search(*args, **kwargs):
            await asyncio.sleep(5)
            return []

        metadata_client.search = AsyncMock(side_effect=slow_search)
        orchestrator = SearchOrchestrator(vector_client, metadata_client, source_timeout=0.05)
        vector, metadata = run(
            orchestrator.retrieve("q", WORKSPACE, FilterSet(court="X"), SearchThresholds())
        )
        assert vector.ok and len(vector.items) == 2
        assert metadata.failure is FailureKind.SOURCE_UNAVAILABLE
        assert metadata.detail == "timed out"

    def test_branches_run_concurrently(self, vector_client, metadata_client) -> None:
        started: list[str] = []
        release = asyncio.Event()

        async def vector_search(*args):
            started.append("vector")
            await release.wait()
            return []

        async def metadata_search(*args):
            started.append("metadata")
            # Both branches are in flight before either finishes
            assert started == ["vector", "metadata"]
            release.set()
            return []

        vector_client.similarity_search = AsyncMock(side_effect=vector_search)
        metadata_client.search = AsyncMock(side_effect=metadata_search)
        orchestrator = SearchOrchestrator(vector_client, metadata_client, source_timeout=1.0)
        vector, metadata = run(orchestrator.retrieve("q", WORKSPACE, FilterSet(court="X"), SearchThresholds()))
        assert vector.ok and metadata.ok


# ---------------------------------------------------------------------------
# Fusion fallback
# ---------------------------------------------------------------------------
class TestFusionFallback:
    def test_fusion_error_returns_vector_only(self, orchestrator) -> None:
        with patch.object(orchestrator_mod, "fuse", AsyncMock(side_effect=RuntimeError("bad input"))):
            results = run(
                orchestrator.search("Supreme Court 2019", WORKSPACE, options=FusionOptions(max_results=1))
            )
        assert len(results) == 1
        assert results[0].id == "d1"
        assert results[0].source is CandidateSource.VECTOR
        assert results[0].combined_score == 0.9

    def test_non_numeric_vector_score_does_not_escape(self, orchestrator, vector_client) -> None:
        vector_client.similarity_search.return_value = [{"id": "a", "score": "n/a"}, make_vector_hit("b", score=0.6)]
        results = run(orchestrator.search("tenancy eviction", WORKSPACE))
        by_id = {r.id: r for r in results}
        assert {"a", "b"} <= set(by_id)
        assert by_id["a"].vector_score == 0.0

    def test_failing_fallback_returns_empty_list(self, orchestrator) -> None:
        with (
            patch.object(orchestrator_mod, "fuse", AsyncMock(side_effect=RuntimeError("bad input"))),
            patch.object(SearchOrchestrator, "vector_only", side_effect=ValueError("bad hit")),
        ):
            assert run(orchestrator.search("tenancy eviction", WORKSPACE)) == []

    def test_vector_only_skips_unusable_hits(self) -> None:
        results = SearchOrchestrator.vector_only([{"score": 0.9}, make_vector_hit("d1", score=1.4)], 5)
        assert [r.id for r in results] == ["d1"]
        assert results[0].combined_score == 1.0


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------
class TestEnrichment:
    def test_display_fields_merged(self, orchestrator, metadata_client) -> None:
        record = make_metadata_record(
            "d1", court="High Court of Delhi", year=2018, citation="2018 SCC OnLine Del 1", case_type="Writ Petition"
        )
        metadata_client.get = AsyncMock(side_effect=lambda doc_id: record if doc_id == "d1" else None)

        results = run(orchestrator.search("bail", WORKSPACE))
        by_id = {r.id: r for r in results}
        assert by_id["d1"].metadata["court"] == "High Court of Delhi"
        assert by_id["d1"].metadata["citation"] == "2018 SCC OnLine Del 1"
        assert by_id["d1"].legal_metadata == record
        assert by_id["d2"].legal_metadata is None

    def test_lookup_errors_are_skipped(self, orchestrator, metadata_client) -> None:
        async def flaky_get(doc_id):
            if doc_id == "d1":
                raise OSError("connection reset")
            return make_metadata_record(doc_id, court="Supreme Court of India")

        metadata_client.get = AsyncMock(side_effect=flaky_get)
        results = run(orchestrator.search("bail", WORKSPACE))
        by_id = {r.id: r for r in results}
        assert by_id["d1"].legal_metadata is None
        assert by_id["d2"].metadata["court"] == "Supreme Court of India"

    def test_no_metadata_client_skips_enrichment(self, vector_client) -> None:
        orchestrator = SearchOrchestrator(vector_client, reranker=RerankerService(RerankerSettings(enabled=False)))
        results = run(orchestrator.search("Supreme Court 2019", WORKSPACE))
        assert {r.id for r in results} == {"d1", "d2"}


# ---------------------------------------------------------------------------
# Stats and facets
# ---------------------------------------------------------------------------
class TestStatsAndFacets:
    def test_stats_delegates(self, orchestrator, metadata_client) -> None:
        assert run(orchestrator.get_search_stats(7)) == {"total_judgments": 3}
        metadata_client.get_stats.assert_awaited_once_with(7)

    def test_stats_error_returns_none(self, orchestrator, metadata_client) -> None:
        metadata_client.get_stats.side_effect = RuntimeError("down")
        assert run(orchestrator.get_search_stats(7)) is None

    def test_facets_for_allowed_field(self, orchestrator, metadata_client) -> None:
        assert run(orchestrator.get_facets(7, "court")) == ["High Court of Delhi", "Supreme Court of India"]
        metadata_client.get_unique_values.assert_awaited_once_with("court", 7)

    def test_facets_reject_unknown_field(self, orchestrator, metadata_client) -> None:
        assert run(orchestrator.get_facets(7, "searchable_text")) == []
        metadata_client.get_unique_values.assert_not_called()

    def test_facets_error_returns_empty(self, orchestrator, metadata_client) -> None:
        metadata_client.get_unique_values.side_effect = RuntimeError("down")
        assert run(orchestrator.get_facets(7, "judge")) == []


class TestCreateOrchestrator:
    def test_builds_reranker_from_config(self, vector_client) -> None:
        orchestrator = create_orchestrator(vector_client)
        assert isinstance(orchestrator.reranker, RerankerService)
        assert orchestrator.metadata_client is None

    def test_reranker_service_shared_across_orchestrators(self, vector_client, metadata_client) -> None:
        first = create_orchestrator(vector_client)
        second = create_orchestrator(vector_client, metadata_client)
        assert first.reranker is second.reranker

    def test_explicit_reranker_is_used(self, vector_client) -> None:
        reranker = RerankerService(RerankerSettings(enabled=False))
        assert create_orchestrator(vector_client, reranker=reranker).reranker is reranker
