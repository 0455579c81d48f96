"""Gemini embedding backend (google-genai SDK)."""

from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import types

from .base import Embedding, EmbeddingError


class GeminiEmbedding(Embedding):
    """Embeddings through ``client.models.embed_content``.

    ``output_dimensionality`` truncates the model output (Matryoshka
    embeddings); leave it unset for the full 3072 dimensions.
    """

    provider_name = "Gemini"
    max_batch_size = 100
    max_tokens = 2048
    known_dimensions = {
        "gemini-embedding-001": 3072,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-embedding-001",
        output_dimensionality: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(model)
        if client is None and not api_key:
            raise ValueError("GEMINI_API_KEY is required for the Gemini embedding provider")
        self.output_dimensionality = output_dimensionality
        if output_dimensionality:
            self._dimension = output_dimensionality
        self.client = client or genai.Client(api_key=api_key)

    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        config = None
        if self.output_dimensionality:
            config = types.EmbedContentConfig(output_dimensionality=self.output_dimensionality)

        response = self.client.models.embed_content(model=self.model, contents=list(texts), config=config)
        embeddings = getattr(response, "embeddings", None)
        if not embeddings:
            raise EmbeddingError("Gemini response missing 'embeddings'")
        return [embedding.values for embedding in embeddings]
