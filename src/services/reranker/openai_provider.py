"""
OpenAI Reranker Provider
Scores documents by asking a chat model for a JSON array of relevance scores.
"""

import json
from collections.abc import Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from src.config.logging_config import setup_logger
from src.services.reranker.base import (
    SCORING_SYSTEM_PROMPT,
    ProviderKind,
    RerankerProvider,
    document_preview,
    document_title,
)
from src.services.reranker.parsing import parse_json_scores
from src.services.search.models import Candidate

logger = setup_logger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

_JSON_INSTRUCTION = (
    '\n\nReturn your response as a JSON object with a "scores" array containing the '
    "relevance score for each document in order."
)


class OpenAIRerankProvider(RerankerProvider):
    """Chat-completion style provider (JSON mode, low temperature)."""

    kind = ProviderKind.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        batch_delay: float = 0.1,
        timeout: float = 30.0,
        llm=None,
    ):
        super().__init__(api_key, model or DEFAULT_OPENAI_MODEL, batch_delay)
        # Low temperature for consistent scoring
        self.llm = llm or ChatOpenAI(model=self.model, api_key=api_key, temperature=0.1, timeout=timeout).bind(
            response_format={"type": "json_object"}
        )
        logger.debug("OpenAI rerank provider initialized (model=%s)", self.model)

    def build_messages(self, query: str, documents: Sequence[Candidate]) -> list:
        doc_list = [
            {"id": idx, "title": document_title(doc) or "Untitled", "text": document_preview(doc)}
            for idx, doc in enumerate(documents)
        ]
        user_content = (
            f'Query: "{query}"\n\nDocuments:\n{json.dumps(doc_list, indent=2, ensure_ascii=False)}\n\n'
            'Return format: { "scores": [0.95, 0.82, 0.67, ...] }'
        )
        return [
            SystemMessage(content=SCORING_SYSTEM_PROMPT + _JSON_INSTRUCTION),
            HumanMessage(content=user_content),
        ]

    async def _request_scores(self, query: str, documents: Sequence[Candidate]) -> list[float] | None:
        logger.info("OpenAI reranking %s documents", len(documents))
        response = await self.llm.ainvoke(self.build_messages(query, documents))
        content = response.content if isinstance(response.content, str) else str(response.content)
        return parse_json_scores(content, len(documents))
