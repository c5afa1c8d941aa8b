# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hosted reranker provider contract.

Every provider turns (query, documents) into one relevance score per document.
Subclasses implement only the network call and response parsing; the public
``score`` / ``score_batch`` methods here guarantee the output length, clamp
to [0, 1] and never raise.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

from src.config.logging_config import setup_logger
from src.services.reranker.parsing import neutral_scores
from src.services.search.models import Candidate, FailureKind, ScoreOutcome, clamp_score

logger = setup_logger(__name__)

# Characters of document text shown to LLM-based scorers
PREVIEW_CHARS = 500

SCORING_SYSTEM_PROMPT = """You are a legal document relevance scorer. You will receive a query and a list of legal documents. Score each document's relevance to the query on a scale of 0.0 to 1.0, where 1.0 is highly relevant and 0.0 is not relevant at all.

Consider:
- Legal terminology and concepts
- Case facts and circumstances
- Legal principles and precedents
- Jurisdictional relevance"""


class ProviderKind(str, Enum):
    """Closed set of supported hosted rerankers."""

    GEMINI = "gemini"
    COHERE = "cohere"
    OPENAI = "openai"

    @classmethod
    def parse(cls, name: str | None) -> ProviderKind | None:
        """Map a configuration string to a provider kind; unknown names give None."""
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            return None


def document_title(doc: Candidate) -> str:
    return doc.display_title


def document_preview(doc: Candidate, limit: int = PREVIEW_CHARS) -> str:
    return (doc.text or "")[:limit]


class RerankerProvider(ABC):
    """Base class for hosted relevance scorers."""

    kind: ProviderKind
    # Max documents per request when called through score_batch
    batch_size: int = 10

    def __init__(self, api_key: str, model: str, batch_delay: float = 0.1):
        if not api_key:
            raise ValueError(f"{self.kind.value} API key is required for reranking")
        self.api_key = api_key
        self.model = model
        self.batch_delay = batch_delay

    @abstractmethod
    async def _request_scores(self, query: str, documents: Sequence[Candidate]) -> list[float] | None:
        """Call the provider and parse its answer.

        May raise on transport / HTTP errors. Returns None when the response
        could not be parsed into ``len(documents)`` scores.
        """

    async def score_outcome(self, query: str, documents: Sequence[Candidate]) -> ScoreOutcome:
        """Score *documents*, reporting why neutral scores were used, if they were."""
        count = len(documents)
        if count == 0:
            return ScoreOutcome(scores=[])

        try:
            scores = await self._request_scores(query, documents)
        except Exception as e:
            logger.error("%s reranker request failed: %s", self.kind.value, e)
            return ScoreOutcome(neutral_scores(count), FailureKind.PROVIDER_REQUEST_FAILED, str(e))

        if scores is None or len(scores) != count:
            logger.warning("%s reranker returned unusable scores for %s documents", self.kind.value, count)
            return ScoreOutcome(neutral_scores(count), FailureKind.SCORE_PARSE_FAILED, "unparseable response")

        return ScoreOutcome([clamp_score(s) for s in scores])

    async def score(self, query: str, documents: Sequence[Candidate]) -> list[float]:
        """One score in [0, 1] per document; neutral 0.5 for all on any failure."""
        outcome = await self.score_outcome(query, documents)
        return outcome.scores

    async def score_batch(
        self, query: str, documents: Sequence[Candidate], batch_size: int | None = None
    ) -> list[float]:
        """Score in provider-sized chunks, sequentially, pausing between requests."""
        size = batch_size or self.batch_size
        scores: list[float] = []
        for start in range(0, len(documents), size):
            batch = documents[start : start + size]
            scores.extend(await self.score(query, batch))
            if start + size < len(documents):
                await asyncio.sleep(self.batch_delay)
        return scores

    def build_user_prompt(self, query: str, documents: Sequence[Candidate]) -> str:
        """Enumerate documents by index with truncated previews."""
        doc_list = "\n\n".join(
            f"[{idx}] Title: {document_title(doc) or 'Untitled'}\nText: {document_preview(doc)}..."
            for idx, doc in enumerate(documents)
        )
        return f'Query: "{query}"\n\nDocuments:\n{doc_list}'
