# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Service Protocols (Interfaces)

Defines the contracts for the external collaborators the search core consumes,
so they can be mocked in tests and swapped in production without coupling to
concrete implementations.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Vector similarity source
# ---------------------------------------------------------------------------
@runtime_checkable
class VectorSearchClient(Protocol):
    """Contract for dense vector similarity search.

    Hits are dicts with at least ``id`` and ``score``; ``text``, ``title`` and
    ``metadata`` are passed through for display. May raise; the orchestrator
    treats a failure as an empty result for this source.
    """

    async def similarity_search(self, namespace: str, query: str, threshold: float, top_n: int) -> list[dict]:
        """Return up to *top_n* hits whose similarity is at least *threshold*."""
        ...


# ---------------------------------------------------------------------------
# Structured metadata source
# ---------------------------------------------------------------------------
@runtime_checkable
class MetadataSearchClient(Protocol):
    """Contract for the relational legal-judgment metadata store.

    ``filters`` keys: workspace_id, court, year, year_from, year_to, case_type,
    judge, citation, jurisdiction, bench_type, keywords, fulltext. Records
    carry ``doc_id`` plus title, citation, court, year, case_type,
    jurisdiction, keywords, petitioner, respondent, ...
    """

    async def search(self, filters: dict[str, Any], limit: int) -> list[dict]:
        """Return records matching every supplied filter."""
        ...

    async def get(self, doc_id: str) -> dict | None:
        """Return the full record for *doc_id*, or None if unknown."""
        ...


@runtime_checkable
class MetadataStatsClient(Protocol):
    """Optional aggregate queries used for search statistics and facets."""

    async def get_stats(self, workspace_id: Any) -> dict | None:
        """Counts of judgments, courts, case types, judges and the year span."""
        ...

    async def get_unique_values(self, field: str, workspace_id: Any = None) -> list:
        """Distinct non-null values of *field* (court, case_type, judge, ...)."""
        ...


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------
@runtime_checkable
class EmbeddingService(Protocol):
    """Contract for query embedding generation (owned by an external service)."""

    def embed_query(self, query_text: str) -> list[float]:
        """Generate an embedding vector for a single query string."""
        ...
