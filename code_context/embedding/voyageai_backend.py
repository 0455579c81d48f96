"""VoyageAI embedding backend."""

from typing import Any, List, Optional, Sequence

import voyageai

from .base import Embedding, EmbeddingError


class VoyageAIEmbedding(Embedding):
    """Embeddings through ``voyageai.Client.embed`` (document input type)."""

    provider_name = "VoyageAI"
    max_batch_size = 128
    max_tokens = 32000
    known_dimensions = {
        "voyage-code-3": 1024,
        "voyage-3": 1024,
        "voyage-3-large": 1024,
        "voyage-3.5": 1024,
        "voyage-3.5-lite": 1024,
        "voyage-3-lite": 512,
        "voyage-code-2": 1536,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "voyage-code-3",
        input_type: str = "document",
        client: Optional[Any] = None,
    ):
        super().__init__(model)
        if client is None and not api_key:
            raise ValueError("VOYAGEAI_API_KEY is required for the VoyageAI embedding provider")
        self.input_type = input_type
        self.client = client or voyageai.Client(api_key=api_key)

    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        result = self.client.embed(list(texts), model=self.model, input_type=self.input_type)
        embeddings = getattr(result, "embeddings", None)
        if embeddings is None:
            raise EmbeddingError("VoyageAI response missing 'embeddings'")
        return embeddings
