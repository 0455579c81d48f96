"""OpenAI embedding backend.

Works against api.openai.com or any OpenAI-compatible endpoint through
``base_url``.
"""

from typing import Any, List, Optional, Sequence

from openai import OpenAI

from .base import Embedding, EmbeddingError


class OpenAIEmbedding(Embedding):
    """Embeddings through the OpenAI ``embeddings.create`` API."""

    provider_name = "OpenAI"
    max_batch_size = 2048
    known_dimensions = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(model)
        if client is None and not api_key:
            raise ValueError("OPENAI_API_KEY is required for the OpenAI embedding provider")
        self.base_url = base_url
        self.client = client or OpenAI(api_key=api_key, base_url=base_url)

    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        response = self.client.embeddings.create(model=self.model, input=list(texts))
        data = getattr(response, "data", None)
        if not isinstance(data, list):
            raise EmbeddingError("OpenAI embeddings response missing list 'data'")
        ordered = sorted(data, key=lambda item: item.index)
        return [item.embedding for item in ordered]
