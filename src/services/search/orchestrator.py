# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hybrid Search Orchestrator

Coordinates one search request:

1. Derive metadata filters from the query (unless the caller supplied some)
2. Run vector search and (if any filter is set) metadata search concurrently
3. Fuse both result sets (merge → optional hosted rerank → score → diversify)
4. Enrich the ranked results with display fields from the metadata store

Every upstream failure degrades to a smaller or neutral result set; only an
invalid request (empty query, no workspace) raises, and it does so before any
network call.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Any

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.protocols import MetadataSearchClient, VectorSearchClient
from src.services.reranker.service import RerankerService, get_reranker_service
from src.services.search.filters import extract_filters
from src.services.search.fusion import candidate_from_vector_hit, explain_scores, fuse
from src.services.search.models import (
    BranchResult,
    Candidate,
    FailureKind,
    FilterSet,
    FusionOptions,
    FusionWeights,
    SearchThresholds,
    WorkspaceContext,
    clamp_score,
)

logger = setup_logger(__name__)

# Record fields copied onto each result's display metadata by enrichment
ENRICHMENT_FIELDS: tuple[str, ...] = ("court", "year", "citation", "case_type")

FACET_FIELDS: frozenset[str] = frozenset({"court", "case_type", "judge", "jurisdiction", "bench_type"})


class SearchOrchestrator:
    """
    Hybrid legal search over a vector source and a metadata source.

    Methods:
    - search: full pipeline (filters → concurrent retrieval → fusion → enrichment)
    - get_search_stats: aggregate counts for a workspace
    - get_facets: distinct values of a filterable field
    """

    def __init__(
        self,
        vector_client: VectorSearchClient,
        metadata_client: MetadataSearchClient | None = None,
        reranker: RerankerService | None = None,
        source_timeout: float | None = None,
        enrichment_timeout: float | None = None,
    ):
        """
        Args:
            vector_client: Dense similarity search collaborator.
            metadata_client: Structured metadata collaborator. Without it the
                             metadata branch and enrichment are skipped.
            reranker: Shared reranker service (built once per process).
            source_timeout: Per-branch bound in seconds. Falls back to
                            SOURCE_TIMEOUT_SECONDS.
            enrichment_timeout: Per-lookup bound in seconds. Falls back to
                                ENRICHMENT_TIMEOUT_SECONDS.
        """
        self.vector_client = vector_client
        self.metadata_client = metadata_client
        self.reranker = reranker
        self.source_timeout = source_timeout or config.SOURCE_TIMEOUT_SECONDS
        self.enrichment_timeout = enrichment_timeout or config.ENRICHMENT_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Defaults from configuration
    # ------------------------------------------------------------------
    @staticmethod
    def default_thresholds() -> SearchThresholds:
        return SearchThresholds(
            similarity_threshold=config.SIMILARITY_THRESHOLD,
            top_n=config.MAX_RESULTS,
            candidate_multiplier=config.CANDIDATE_MULTIPLIER,
        )

    @staticmethod
    def default_weights() -> FusionWeights:
        return FusionWeights(
            semantic=config.SEMANTIC_WEIGHT,
            reranker=config.RERANKER_WEIGHT,
            metadata=config.METADATA_WEIGHT,
        )

    @staticmethod
    def default_options(max_results: int) -> FusionOptions:
        return FusionOptions(
            max_results=max_results,
            diversity_factor=config.DIVERSITY_FACTOR,
            use_hosted_reranker=config.USE_HOSTED_RERANKER,
        )

    # ------------------------------------------------------------------
    # Retrieval branches
    # ------------------------------------------------------------------
    async def _vector_branch(self, query: str, workspace: WorkspaceContext, thresholds: SearchThresholds) -> list:
        return await asyncio.wait_for(
            self.vector_client.similarity_search(
                workspace.slug,
                query,
                thresholds.similarity_threshold,
                thresholds.candidate_limit,
            ),
            timeout=self.source_timeout,
        )

    async def _metadata_branch(self, filters: FilterSet, workspace: WorkspaceContext, limit: int) -> list:
        return await asyncio.wait_for(
            self.metadata_client.search(filters.to_search_params(workspace.id), limit),
            timeout=self.source_timeout,
        )

    @staticmethod
    def _settle(label: str, outcome: Any) -> BranchResult:
        """Turn a gathered branch outcome (list or exception) into a BranchResult."""
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.TimeoutError):
                detail = "timed out"
            else:
                detail = f"{type(outcome).__name__}: {outcome}"
            logger.warning("%s search failed, continuing without it: %s", label, detail)
            return BranchResult(label, [], FailureKind.SOURCE_UNAVAILABLE, detail)
        return BranchResult(label, list(outcome or []))

    async def retrieve(
        self,
        query: str,
        workspace: WorkspaceContext,
        filters: FilterSet,
        thresholds: SearchThresholds,
    ) -> tuple[BranchResult, BranchResult]:
        """Run both retrieval branches concurrently; each fails independently."""
        run_metadata = self.metadata_client is not None and not filters.is_empty()

        branches = [self._vector_branch(query, workspace, thresholds)]
        if run_metadata:
            branches.append(self._metadata_branch(filters, workspace, thresholds.candidate_limit))

        outcomes = await asyncio.gather(*branches, return_exceptions=True)

        vector = self._settle("vector", outcomes[0])
        metadata = self._settle("metadata", outcomes[1]) if run_metadata else BranchResult("metadata")
        return vector, metadata

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------
    async def _lookup(self, doc_id: str) -> dict | None:
        return await asyncio.wait_for(self.metadata_client.get(doc_id), timeout=self.enrichment_timeout)

    async def enrich(self, results: list[Candidate]) -> list[Candidate]:
        """Attach the full metadata record to each result, best effort."""
        if self.metadata_client is None or not results:
            return results

        records = await asyncio.gather(*(self._lookup(r.id) for r in results), return_exceptions=True)

        enriched: list[Candidate] = []
        for result, record in zip(results, records):
            if isinstance(record, BaseException):
                logger.debug("Enrichment lookup failed for %s: %s", result.id, record)
                enriched.append(result)
                continue
            if not record:
                enriched.append(result)
                continue
            display = {key: record.get(key) for key in ENRICHMENT_FIELDS}
            enriched.append(
                dataclasses.replace(
                    result,
                    metadata={**result.metadata, **display},
                    legal_metadata=dict(record),
                )
            )
        return enriched

    # ------------------------------------------------------------------
    # Fallback
    # ------------------------------------------------------------------
    @staticmethod
    def vector_only(vector_hits: list, limit: int) -> list[Candidate]:
        """Raw vector hits as candidates, in source order, scored by similarity alone."""
        candidates: list[Candidate] = []
        for hit in vector_hits:
            candidate = candidate_from_vector_hit(hit)
            if candidate is None:
                continue
            candidate.combined_score = clamp_score(candidate.vector_score)
            candidates.append(candidate)
            if len(candidates) >= limit:
                break
        return candidates

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------
    async def search(
        self,
        query: str,
        workspace: WorkspaceContext,
        *,
        filters: FilterSet | None = None,
        thresholds: SearchThresholds | None = None,
        weights: FusionWeights | None = None,
        options: FusionOptions | None = None,
    ) -> list[Candidate]:
        """
        Hybrid search for *query* within *workspace*.

        Args:
            query: Natural-language query.
            workspace: Workspace scope (id for metadata, slug for vector namespace).
            filters: Explicit metadata filters; extracted from the query when empty.
            thresholds: Similarity threshold and result count.
            weights: Fusion weight overrides.
            options: max_results / diversity_factor / use_hosted_reranker overrides.

        Returns:
            Candidates sorted by combined_score descending.

        Raises:
            ValueError: empty or oversize query, or missing workspace.
        """
        if not query or not query.strip():
            raise ValueError("query is required")
        if len(query) > config.MAX_QUERY_LENGTH:
            raise ValueError(f"query exceeds {config.MAX_QUERY_LENGTH} characters")
        if workspace is None or workspace.id is None:
            raise ValueError("workspace is required")

        pipeline_start = time.time()
        thresholds = thresholds or self.default_thresholds()
        weights = weights or self.default_weights()
        options = options or self.default_options(thresholds.top_n)

        if filters is None or filters.is_empty():
            filters = extract_filters(query)
        logger.info("Hybrid search: %r (workspace=%s) filters=%s", query, workspace.slug, filters.to_search_params(workspace.id))

        vector, metadata = await self.retrieve(query, workspace, filters, thresholds)
        logger.info(
            "Retrieved vector=%s%s, metadata=%s%s",
            len(vector.items),
            "" if vector.ok else f" ({vector.failure.value})",
            len(metadata.items),
            "" if metadata.ok else f" ({metadata.failure.value})",
        )

        try:
            results = await fuse(
                vector.items,
                metadata.items,
                query,
                weights=weights,
                options=options,
                reranker=self.reranker,
            )
        except Exception as e:
            logger.error("%s: %s; falling back to vector-only results", FailureKind.FUSION_FAILED.value, e)
            try:
                return self.vector_only(vector.items, options.max_results)
            except Exception as fallback_error:
                logger.error("Vector-only fallback failed, returning no results: %s", fallback_error)
                return []

        results = await self.enrich(results)

        if config.DEBUG_HYBRID_SEARCH:
            explain_scores(results, weights, top_n=5)

        logger.info("Hybrid search done in %.2fs -> %s results", time.time() - pipeline_start, len(results))
        return results

    # ------------------------------------------------------------------
    # Workspace statistics
    # ------------------------------------------------------------------
    async def get_search_stats(self, workspace_id: Any) -> dict | None:
        """Aggregate counts for a workspace, or None if unavailable."""
        getter = getattr(self.metadata_client, "get_stats", None)
        if getter is None:
            return None
        try:
            return await getter(workspace_id)
        except Exception as e:
            logger.error("Search stats error: %s", e)
            return None

    async def get_facets(self, workspace_id: Any, field: str) -> list:
        """Distinct values for a filterable field (court, case_type, judge, ...)."""
        if field not in FACET_FIELDS:
            logger.warning("Invalid facet field: %s", field)
            return []
        getter = getattr(self.metadata_client, "get_unique_values", None)
        if getter is None:
            return []
        try:
            return await getter(field, workspace_id)
        except Exception as e:
            logger.error("Facets error: %s", e)
            return []


def create_orchestrator(
    vector_client: VectorSearchClient,
    metadata_client: MetadataSearchClient | None = None,
    reranker: RerankerService | None = None,
) -> SearchOrchestrator:
    """Wire an orchestrator.

    Without an explicit *reranker* every orchestrator shares the process-wide
    service, so the provider is constructed once per process.
    """
    return SearchOrchestrator(
        vector_client=vector_client,
        metadata_client=metadata_client,
        reranker=reranker or get_reranker_service(),
    )
