"""
Shared test helpers. Used across unit tests to avoid duplication.
"""

import asyncio

from src.services.search.models import Candidate


def run(coro):
    """Run a coroutine synchronously (pytest-asyncio not required)."""
    return asyncio.run(coro)


def make_vector_hit(doc_id: str, score: float = 0.8, title: str = "", text: str = "", **metadata: object) -> dict:
    """Create a minimal vector-source hit."""
    return {
        "id": doc_id,
        "score": score,
        "text": text or f"Judgment text for {doc_id}.",
        "title": title,
        "metadata": dict(metadata),
    }


def make_metadata_record(doc_id: str, **overrides: object) -> dict:
    """Create a minimal legal_judgment_metadata row."""
    record: dict[str, object] = {"doc_id": doc_id}
    record.update(overrides)
    return record


def make_candidate(doc_id: str, **overrides: object) -> Candidate:
    """Create a Candidate with sensible defaults for tests."""
    defaults: dict[str, object] = {
        "id": doc_id,
        "title": f"Case {doc_id}",
        "text": "The appellant was convicted under Section 302 IPC.",
    }
    defaults.update(overrides)
    return Candidate(**defaults)
