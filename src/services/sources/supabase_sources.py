# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Supabase-backed search sources

SupabaseMetadataClient queries the ``legal_judgment_metadata`` table with the
structured filters extracted from a query. SupabaseVectorClient embeds the
query and calls the workspace similarity RPC.

Neither client catches PostgREST or transport errors: the orchestrator records
a failing branch as unavailable and carries on with the other one.
"""

import asyncio
from collections import Counter
from typing import Any

from supabase import AsyncClient, create_async_client

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.protocols import EmbeddingService

logger = setup_logger(__name__)

# Columns matched as case-insensitive substrings
_ILIKE_FIELDS: tuple[str, ...] = ("court", "judge", "citation", "jurisdiction")
# Columns matched exactly
_EQ_FIELDS: tuple[str, ...] = ("case_type", "bench_type")

FACET_COLUMNS: frozenset[str] = frozenset({"court", "case_type", "judge", "jurisdiction", "bench_type"})


class _SupabaseSource:
    """Shared lazy async client handling."""

    def __init__(self, url: str | None = None, key: str | None = None, client: AsyncClient | None = None):
        self.url = url or config.SUPABASE_URL
        self.key = key or config.SUPABASE_KEY

        if client is None and (not self.url or not self.key):
            raise ValueError("Supabase URL and KEY required")

        self.client: AsyncClient | None = client
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        """Lazy load the async client (one per source instance)."""
        async with self._client_lock:
            if self.client is None:
                self.client = await create_async_client(self.url, self.key)
        return self.client


class SupabaseMetadataClient(_SupabaseSource):
    """Structured legal-judgment metadata store."""

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        client: AsyncClient | None = None,
        table: str | None = None,
    ):
        super().__init__(url, key, client)
        self.table = table or config.METADATA_TABLE

    async def search(self, filters: dict[str, Any], limit: int) -> list[dict]:
        """
        Return judgments matching every supplied filter, newest first.

        Args:
            filters: Keys from FilterSet.to_search_params (workspace_id, court,
                     year, year_from, year_to, case_type, judge, citation,
                     jurisdiction, bench_type, keywords, fulltext).
            limit: Maximum number of records.
        """
        client = await self._get_client()
        query = client.table(self.table).select("*")

        if filters.get("workspace_id") is not None:
            query = query.eq("workspace_id", filters["workspace_id"])

        for field in _ILIKE_FIELDS:
            if filters.get(field):
                query = query.ilike(field, f"%{filters[field]}%")

        if filters.get("year") is not None:
            query = query.eq("year", filters["year"])
        else:
            if filters.get("year_from") is not None:
                query = query.gte("year", filters["year_from"])
            if filters.get("year_to") is not None:
                query = query.lte("year", filters["year_to"])

        for field in _EQ_FIELDS:
            if filters.get(field):
                query = query.eq(field, filters[field])

        if filters.get("keywords"):
            query = query.overlaps("keywords", list(filters["keywords"]))

        if filters.get("fulltext"):
            query = query.text_search(
                "searchable_text",
                filters["fulltext"],
                options={"type": "plain", "config": "english"},
            )

        response = await query.order("year", desc=True, nullsfirst=False).limit(limit).execute()
        records = response.data or []
        logger.debug("Metadata search matched %s records", len(records))
        return records

    async def get(self, doc_id: str) -> dict | None:
        client = await self._get_client()
        response = await client.table(self.table).select("*").eq("doc_id", doc_id).limit(1).execute()
        rows = response.data or []
        return rows[0] if rows else None

    async def get_unique_values(self, field: str, workspace_id: Any = None) -> list:
        """Distinct non-null values of *field*, sorted."""
        if field not in FACET_COLUMNS:
            raise ValueError(f"Unsupported facet field: {field}")

        client = await self._get_client()
        query = client.table(self.table).select(field)
        if workspace_id is not None:
            query = query.eq("workspace_id", workspace_id)
        response = await query.execute()

        values = {row.get(field) for row in response.data or []}
        values.discard(None)
        values.discard("")
        return sorted(values, key=str)

    async def get_stats(self, workspace_id: Any) -> dict:
        """Judgment count, distinct courts / case types / judges, and the year span."""
        client = await self._get_client()
        response = (
            await client.table(self.table)
            .select("doc_id, court, case_type, judge, year")
            .eq("workspace_id", workspace_id)
            .execute()
        )
        rows = response.data or []
        years = [row["year"] for row in rows if isinstance(row.get("year"), int)]

        return {
            "total_judgments": len(rows),
            "unique_courts": len({row.get("court") for row in rows if row.get("court")}),
            "unique_case_types": len({row.get("case_type") for row in rows if row.get("case_type")}),
            "unique_judges": len({row.get("judge") for row in rows if row.get("judge")}),
            "earliest_year": min(years) if years else None,
            "latest_year": max(years) if years else None,
            "top_courts": Counter(row.get("court") for row in rows if row.get("court")).most_common(5),
        }


class SupabaseVectorClient(_SupabaseSource):
    """Workspace-scoped dense similarity search via a Postgres RPC."""

    def __init__(
        self,
        embedder: EmbeddingService,
        url: str | None = None,
        key: str | None = None,
        client: AsyncClient | None = None,
        rpc_name: str | None = None,
    ):
        super().__init__(url, key, client)
        self.embedder = embedder
        self.rpc_name = rpc_name or config.VECTOR_SEARCH_RPC

    async def similarity_search(self, namespace: str, query: str, threshold: float, top_n: int) -> list[dict]:
        # Embedding clients are synchronous
        embedding = await asyncio.to_thread(self.embedder.embed_query, query)

        client = await self._get_client()
        response = await client.rpc(
            self.rpc_name,
            {
                "query_embedding": embedding,
                "match_threshold": threshold,
                "match_count": top_n,
                "namespace": namespace,
            },
        ).execute()

        hits: list[dict] = []
        for item in response.data or []:
            metadata = item.get("metadata") or {}
            hits.append(
                {
                    "id": item.get("doc_id") or item.get("id"),
                    "score": item.get("similarity", 0),
                    "text": item.get("content") or item.get("text", ""),
                    "title": item.get("title") or metadata.get("title", ""),
                    "metadata": metadata,
                }
            )
        logger.debug("Vector search returned %s hits (namespace=%s)", len(hits), namespace)
        return hits
