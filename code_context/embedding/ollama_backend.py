"""Ollama embedding backend for locally served models."""

from typing import Any, List, Optional, Sequence

import ollama

from code_context.common.config import DEFAULT_OLLAMA_HOST

from .base import Embedding, EmbeddingError


class OllamaEmbedding(Embedding):
    """Embeddings through ``ollama.Client.embed``.

    Local models rarely publish their output size, so the dimension is
    probed on first use.
    """

    provider_name = "Ollama"
    max_batch_size = 16

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(model)
        self.host = host or DEFAULT_OLLAMA_HOST
        self.client = client or ollama.Client(host=self.host)

    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        response = self.client.embed(model=self.model, input=list(texts))
        try:
            return response["embeddings"]
        except (KeyError, TypeError) as e:
            raise EmbeddingError("Ollama response missing 'embeddings'") from e
