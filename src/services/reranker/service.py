# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hosted Reranker Service

Selects and lazily constructs exactly one reranker provider from
configuration. Build one instance at process start and pass it to the
orchestrator; the provider is read-only after construction so concurrent
searches can share it.

``rerank`` / ``rerank_batch`` never raise: with no provider, or on any
provider failure, every document comes back with the neutral 0.5 score.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from src.config.logging_config import setup_logger
from src.config.settings import config, resolve_reranker_api_key
from src.services.reranker.base import ProviderKind, RerankerProvider
from src.services.reranker.cohere_provider import CohereRerankProvider
from src.services.reranker.gemini_provider import GeminiRerankProvider
from src.services.reranker.openai_provider import OpenAIRerankProvider
from src.services.search.models import NEUTRAL_SCORE, Candidate, FailureKind

logger = setup_logger(__name__)

_PROVIDER_CLASSES: dict[ProviderKind, type[RerankerProvider]] = {
    ProviderKind.GEMINI: GeminiRerankProvider,
    ProviderKind.COHERE: CohereRerankProvider,
    ProviderKind.OPENAI: OpenAIRerankProvider,
}


@dataclass(frozen=True)
class RerankerSettings:
    """Immutable reranker configuration."""

    enabled: bool = False
    provider: str = ""
    api_key: str = ""
    model: str = ""
    timeout: float = 30.0
    batch_delay: float = 0.1

    @classmethod
    def from_config(cls) -> RerankerSettings:
        provider = config.RERANKER_PROVIDER
        model = config.RERANKER_MODEL
        if not model and provider == "gemini":
            model = config.GEMINI_LLM_MODEL_PREF
        return cls(
            enabled=config.RERANKER_ENABLED,
            provider=provider,
            api_key=resolve_reranker_api_key(provider),
            model=model,
            timeout=config.RERANKER_TIMEOUT_SECONDS,
            batch_delay=config.RERANK_BATCH_DELAY_SECONDS,
        )


def with_neutral_scores(documents: Sequence[Candidate]) -> list[Candidate]:
    return [dataclasses.replace(doc, reranker_score=NEUTRAL_SCORE) for doc in documents]


class RerankerService:
    """Process-wide holder of the configured hosted reranker (if any)."""

    def __init__(self, settings: RerankerSettings | None = None, provider: RerankerProvider | None = None):
        """
        Args:
            settings: Reranker configuration. Falls back to environment config.
            provider: Pre-built provider (skips lazy construction; used by tests
                      and callers that manage their own clients).
        """
        self.settings = settings or RerankerSettings.from_config()
        self._provider = provider
        self._init_failure: FailureKind | None = None
        self._init_lock = threading.Lock()
        self._initialized = provider is not None

    def _build_provider(self) -> RerankerProvider | None:
        if not self.settings.enabled:
            logger.warning("Hosted reranking disabled (RERANKER_ENABLED=false), using neutral scores")
            return None

        kind = ProviderKind.parse(self.settings.provider)
        if kind is None:
            logger.warning("Unknown reranker provider: %r. Reranking disabled.", self.settings.provider)
            self._init_failure = FailureKind.PROVIDER_MISCONFIGURED
            return None

        provider_cls = _PROVIDER_CLASSES[kind]
        try:
            provider = provider_cls(
                api_key=self.settings.api_key,
                model=self.settings.model or None,
                batch_delay=self.settings.batch_delay,
                timeout=self.settings.timeout,
            )
        except ValueError as e:
            logger.warning("Reranker initialization failed (%s): %s", kind.value, e)
            self._init_failure = FailureKind.PROVIDER_MISCONFIGURED
            return None

        logger.info("Reranker initialized with %s (%s)", kind.value, provider.model)
        return provider

    def _get_provider(self) -> RerankerProvider | None:
        """Construct the provider on first use, exactly once."""
        if not self._initialized:
            with self._init_lock:
                if not self._initialized:
                    self._provider = self._build_provider()
                    self._initialized = True
        return self._provider

    @property
    def init_failure(self) -> FailureKind | None:
        """Why no provider is set, when that is due to misconfiguration."""
        self._get_provider()
        return self._init_failure

    def is_available(self) -> bool:
        return self._get_provider() is not None

    async def rerank(self, query: str, documents: Sequence[Candidate]) -> list[Candidate]:
        """Return copies of *documents* annotated with ``reranker_score``. Never raises."""
        provider = self._get_provider()
        if provider is None:
            logger.debug("No reranker provider available, using neutral scores")
            return with_neutral_scores(documents)

        try:
            scores = await provider.score(query, documents)
        except Exception as e:
            logger.error("Reranking failed: %s", e)
            return with_neutral_scores(documents)
        return self._annotate(documents, scores)

    async def rerank_batch(
        self, query: str, documents: Sequence[Candidate], batch_size: int | None = None
    ) -> list[Candidate]:
        """Like ``rerank`` but split into provider-sized requests."""
        provider = self._get_provider()
        if provider is None:
            return with_neutral_scores(documents)

        try:
            scores = await provider.score_batch(query, documents, batch_size)
        except Exception as e:
            logger.error("Batch reranking failed: %s", e)
            return with_neutral_scores(documents)
        return self._annotate(documents, scores)

    @staticmethod
    def _annotate(documents: Sequence[Candidate], scores: list[float]) -> list[Candidate]:
        if len(scores) != len(documents):
            logger.warning("Reranker returned %s scores for %s documents", len(scores), len(documents))
            return with_neutral_scores(documents)
        return [dataclasses.replace(doc, reranker_score=score) for doc, score in zip(documents, scores)]

    def get_config(self) -> dict:
        return {
            "enabled": self.settings.enabled,
            "provider": self.settings.provider or "none",
            "model": self.settings.model or "default",
            "available": self.is_available(),
        }


_shared_service: RerankerService | None = None
_shared_lock = threading.Lock()


def get_reranker_service() -> RerankerService:
    """Process-wide RerankerService built from config on first call."""
    global _shared_service
    if _shared_service is None:
        with _shared_lock:
            if _shared_service is None:
                _shared_service = RerankerService()
    return _shared_service
