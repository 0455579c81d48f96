"""AWS Bedrock embedding backend.

Supports the Amazon Titan text embedding models and Cohere embed models
hosted on Bedrock, all through ``bedrock-runtime.invoke_model``.

Request shapes
- Titan v2: ``{"inputText", "dimensions", "normalize"}``, one text per call
- Titan v1: ``{"inputText"}``, one text per call
- Cohere: ``{"texts", "input_type"}``, up to ``max_batch_size`` texts per call

Credentials fall back to the default boto3 chain (env vars, profile,
instance role) when no explicit keys are given.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import boto3
import structlog

from code_context.common.config import DEFAULT_AWS_REGION

from .base import Embedding, EmbeddingError

logger = structlog.get_logger("embedding.bedrock")

TITAN_V2 = "amazon.titan-embed-text-v2:0"
TITAN_V1 = "amazon.titan-embed-text-v1"

# model id -> (max input tokens, default output dimension)
MODEL_LIMITS: Dict[str, Dict[str, int]] = {
    TITAN_V2: {"max_tokens": 8192, "dimension": 1024},
    TITAN_V1: {"max_tokens": 8000, "dimension": 1536},
    "cohere.embed-english-v3": {"max_tokens": 512, "dimension": 1024},
    "cohere.embed-multilingual-v3": {"max_tokens": 512, "dimension": 1024},
}

TITAN_V2_DIMENSIONS = (256, 512, 1024)
COHERE_MAX_BATCH = 96


def is_titan(model: str) -> bool:
    return model.startswith("amazon.titan-embed")


def is_cohere(model: str) -> bool:
    return model.startswith("cohere.embed")


class BedrockEmbedding(Embedding):
    """Embeddings through Bedrock ``invoke_model``."""

    provider_name = "Bedrock"
    max_batch_size = 25

    def __init__(
        self,
        model: str = TITAN_V2,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        max_batch_size: int = 25,
        dimensions: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        """Configure the Bedrock runtime client.

        Parameters
        - model: Bedrock model id (Titan or Cohere)
        - region: AWS region (``us-east-1`` when omitted)
        - access_key_id / secret_access_key / session_token: Explicit
          credentials; omitted values fall back to the boto3 chain
        - max_batch_size: Texts per Cohere call (capped at 96)
        - dimensions: Titan v2 output size (256, 512 or 1024)
        - client: Pre-built ``bedrock-runtime`` client (tests)
        """
        if not (is_titan(model) or is_cohere(model)):
            raise EmbeddingError(f"Unsupported Bedrock embedding model: {model}")
        if dimensions is not None and (model != TITAN_V2 or dimensions not in TITAN_V2_DIMENSIONS):
            raise ValueError(
                f"dimensions must be one of {TITAN_V2_DIMENSIONS} and is only supported by {TITAN_V2}"
            )

        super().__init__(model)
        limits = MODEL_LIMITS.get(model, {})
        self.max_tokens = limits.get("max_tokens", self.max_tokens)
        self.dimensions = dimensions
        self._dimension = dimensions or limits.get("dimension", 0)
        # Titan takes a single inputText per invocation
        self.max_batch_size = 1 if is_titan(model) else min(max_batch_size, COHERE_MAX_BATCH)
        self.region = region or DEFAULT_AWS_REGION

        if client is not None:
            self.client = client
        else:
            session_kwargs: Dict[str, Any] = {"region_name": self.region}
            if access_key_id and secret_access_key:
                session_kwargs.update(
                    aws_access_key_id=access_key_id,
                    aws_secret_access_key=secret_access_key,
                    aws_session_token=session_token,
                )
            self.client = boto3.client("bedrock-runtime", **session_kwargs)

    def _request_body(self, texts: Sequence[str]) -> Dict[str, Any]:
        if self.model == TITAN_V2:
            body: Dict[str, Any] = {"inputText": texts[0], "normalize": True}
            if self.dimensions:
                body["dimensions"] = self.dimensions
            return body
        if is_titan(self.model):
            return {"inputText": texts[0]}
        return {"texts": list(texts), "input_type": "search_document", "truncate": "END"}

    def _invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.invoke_model(
            modelId=self.model,
            contentType="application/json",
            accept="application/json",
            body=json.dumps(body),
        )
        raw = response.get("body")
        if raw is None:
            raise EmbeddingError(f"Bedrock response for {self.model} has no body")
        payload = raw.read() if hasattr(raw, "read") else raw
        if not payload:
            raise EmbeddingError(f"Bedrock response for {self.model} has an empty body")
        return json.loads(payload)

    def _request_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        result = self._invoke(self._request_body(texts))
        if is_titan(self.model):
            embedding = result.get("embedding")
            if not embedding:
                raise EmbeddingError(f"Bedrock {self.model} response missing 'embedding'")
            return [embedding]

        embeddings = result.get("embeddings")
        if not embeddings:
            raise EmbeddingError(f"Bedrock {self.model} response missing 'embeddings'")
        return embeddings

    def get_provider(self) -> str:
        return f"bedrock:{self.model}"

    def get_model_info(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "region": self.region,
            "dimension": self._dimension,
            "max_tokens": self.max_tokens,
            "max_batch_size": self.max_batch_size,
        }

    @staticmethod
    def get_available_models() -> List[str]:
        return list(MODEL_LIMITS)
