"""
Cohere Reranker Provider
Scores documents with Cohere's native rerank endpoint.
"""

from collections.abc import Sequence

import cohere

from src.config.logging_config import setup_logger
from src.services.reranker.base import ProviderKind, RerankerProvider, document_title
from src.services.search.models import NEUTRAL_SCORE, Candidate

logger = setup_logger(__name__)

DEFAULT_COHERE_MODEL = "rerank-english-v3.0"


class CohereRerankProvider(RerankerProvider):
    """
    Rerank-endpoint style provider.

    Sends the query and one flattened ``title\\n\\ntext`` string per document in a
    single request; scores come back keyed by input index.
    """

    kind = ProviderKind.COHERE
    # Cohere accepts up to 100 documents per request
    batch_size = 100

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        batch_delay: float = 0.1,
        timeout: float = 30.0,
        client: cohere.AsyncClient | None = None,
    ):
        super().__init__(api_key, model or DEFAULT_COHERE_MODEL, batch_delay)
        self.client = client or cohere.AsyncClient(api_key=api_key, timeout=timeout)
        logger.debug("Cohere rerank provider initialized (model=%s)", self.model)

    @staticmethod
    def _flatten(doc: Candidate) -> str:
        title = document_title(doc)
        text = doc.text or ""
        return f"{title}\n\n{text}" if title else text

    async def _request_scores(self, query: str, documents: Sequence[Candidate]) -> list[float] | None:
        logger.info("Cohere reranking %s documents", len(documents))
        response = await self.client.rerank(
            model=self.model,
            query=query,
            documents=[self._flatten(doc) for doc in documents],
            top_n=len(documents),
            return_documents=False,
        )

        results = getattr(response, "results", None)
        if results is None:
            return None

        # Map scores back by input index; indices the API omitted stay neutral
        scores = [NEUTRAL_SCORE] * len(documents)
        for item in results:
            if 0 <= item.index < len(documents):
                scores[item.index] = item.relevance_score
        return scores
