"""Base embedding provider interface.

Every backend converts text to fixed-dimension vectors through the same
contract: ``embed`` for one text, ``embed_batch`` for many (order
preserved). Subclasses only implement ``_request_embeddings``, the single
SDK round trip for one chunk of texts; batching under the provider's
per-call ceiling, response validation, and error wrapping live here.

Errors
- Any SDK failure, or an empty/malformed payload, raises ``EmbeddingError``
  chained to the original exception. There is no retry policy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import structlog

from code_context.common.batching import submit_in_batches

logger = structlog.get_logger("embedding")

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class EmbeddingVector:
    """One embedding and its dimensionality."""
    vector: List[float]
    dimension: int


class EmbeddingError(Exception):
    """Embedding request failed or returned an unusable payload."""
    pass


def to_embedding_vectors(rows: Any, expected_count: int, provider: str) -> List[EmbeddingVector]:
    """Validate raw SDK rows and convert them to ``EmbeddingVector``s.

    Rows must be a list of non-empty numeric sequences of equal length, one
    per requested text.
    """
    if not isinstance(rows, (list, tuple)):
        raise EmbeddingError(f"{provider} returned no embeddings list")
    if len(rows) != expected_count:
        raise EmbeddingError(
            f"{provider} returned {len(rows)} embeddings for {expected_count} texts"
        )

    vectors: List[EmbeddingVector] = []
    dimension = None
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) == 0:
            raise EmbeddingError(f"{provider} returned an empty or non-list embedding")
        try:
            values = [float(value) for value in row]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"{provider} returned a non-numeric embedding: {e}") from e
        if dimension is None:
            dimension = len(values)
        elif len(values) != dimension:
            raise EmbeddingError(
                f"{provider} embedding dimension mismatch: expected {dimension}, got {len(values)}"
            )
        vectors.append(EmbeddingVector(vector=values, dimension=len(values)))
    return vectors


class Embedding(ABC):
    """Abstract base class for embedding providers.

    Class attributes
    - ``provider_name``: Human-readable provider label
    - ``max_batch_size``: Texts per SDK call
    - ``known_dimensions``: Model name -> output size; unknown models are
      probed lazily by ``detect_dimension``
    """

    provider_name: str = "unknown"
    max_batch_size: int = 100
    max_tokens: int = 8192
    known_dimensions: Dict[str, int] = {}

    def __init__(self, model: str):
        self.model = model
        self._dimension = self.known_dimensions.get(model, 0)

    def preprocess_text(self, text: str) -> str:
        """Replace empty input with a space and cut to the model's context size."""
        if not text:
            return " "
        max_chars = self.max_tokens * CHARS_PER_TOKEN
        return text[:max_chars]

    def preprocess_texts(self, texts: Sequence[str]) -> List[str]:
        return [self.preprocess_text(text) for text in texts]

    @abstractmethod
    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        """One SDK round trip for at most ``max_batch_size`` texts."""
        pass

    def _embed_chunk(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        provider = self.get_provider()
        try:
            rows = self._request_embeddings(texts)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error("Embedding request failed", provider=provider, count=len(texts), error=str(e))
            raise EmbeddingError(f"{provider} embedding request failed: {e}") from e

        vectors = to_embedding_vectors(rows, len(texts), provider)
        if not self._dimension:
            self._dimension = vectors[0].dimension
        return vectors

    def embed(self, text: str) -> EmbeddingVector:
        """Embed a single text."""
        return self._embed_chunk([self.preprocess_text(text)])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        """Embed many texts, ``max_batch_size`` per request, in input order.

        The first failing request aborts the whole batch.
        """
        if not texts:
            return []

        processed = self.preprocess_texts(texts)
        results: List[EmbeddingVector] = []
        for chunk in submit_in_batches(processed, self.max_batch_size, self._embed_chunk, operation="embed"):
            results.extend(chunk)
        return results

    def detect_dimension(self, test_text: str = "test") -> int:
        """Known dimension, or the size of a probe embedding."""
        if self._dimension:
            return self._dimension
        self._dimension = self.embed(test_text).dimension
        logger.info("Detected embedding dimension", provider=self.get_provider(), dimension=self._dimension)
        return self._dimension

    def get_dimension(self) -> int:
        """Dimension if known (``0`` until detected for unknown models)."""
        return self._dimension

    def get_provider(self) -> str:
        return self.provider_name
