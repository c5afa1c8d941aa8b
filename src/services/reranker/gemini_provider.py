"""
Gemini Reranker Provider

Gemini has no native rerank endpoint, so relevance is scored with a
generateContent prompt and the free-text answer is parsed for a bracketed
array of floats.
"""

from collections.abc import Sequence

import httpx

from src.config.logging_config import setup_logger
from src.services.reranker.base import SCORING_SYSTEM_PROMPT, ProviderKind, RerankerProvider
from src.services.reranker.parsing import parse_bracketed_scores
from src.services.search.models import Candidate

logger = setup_logger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-lite"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

_OUTPUT_INSTRUCTIONS = """Instructions:
1. Score each document based on how relevant it is to the query
2. Consider legal context, case facts, legal principles, and terminology
3. Return ONLY a JSON array of scores in the same order as documents
4. Format: [0.95, 0.82, 0.67, ...]

Scores:"""


class GeminiRerankProvider(RerankerProvider):
    """Generative style provider over the Gemini REST API."""

    kind = ProviderKind.GEMINI

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        batch_delay: float = 0.1,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        api_base: str = GEMINI_API_BASE,
    ):
        super().__init__(api_key, model or DEFAULT_GEMINI_MODEL, batch_delay)
        self.endpoint = f"{api_base}/models/{self.model}:generateContent"
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        logger.debug("Gemini rerank provider initialized (model=%s)", self.model)

    def build_prompt(self, query: str, documents: Sequence[Candidate]) -> str:
        return f"{SCORING_SYSTEM_PROMPT}\n\n{self.build_user_prompt(query, documents)}\n\n{_OUTPUT_INSTRUCTIONS}"

    @staticmethod
    def _response_text(data: dict) -> str:
        """Concatenate the text parts of the first candidate; empty if the shape is unexpected."""
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    async def _request_scores(self, query: str, documents: Sequence[Candidate]) -> list[float] | None:
        logger.info("Gemini reranking %s documents", len(documents))
        response = await self.http_client.post(
            self.endpoint,
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            json={
                "contents": [{"role": "user", "parts": [{"text": self.build_prompt(query, documents)}]}],
                "generationConfig": {"temperature": 0.1},
            },
        )
        response.raise_for_status()
        text = self._response_text(response.json())
        return parse_bracketed_scores(text, len(documents))
