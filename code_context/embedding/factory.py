"""Embedding provider factory.

Maps the resolved ``ContextMcpConfig`` onto one concrete ``Embedding``
backend. Missing credentials for the chosen provider surface here, at
construction, as ``ValueError`` naming the environment variable to set.
"""

from typing import Any

import structlog

from code_context.common.config import ContextMcpConfig, EmbeddingProviderName

from .base import Embedding
from .bedrock_backend import BedrockEmbedding
from .gemini_backend import GeminiEmbedding
from .ollama_backend import OllamaEmbedding
from .openai_backend import OpenAIEmbedding
from .voyageai_backend import VoyageAIEmbedding

logger = structlog.get_logger("embedding.factory")


def _require(value: Any, env_var: str, provider: EmbeddingProviderName) -> None:
    if not value:
        raise ValueError(f"{env_var} is required when EMBEDDING_PROVIDER={provider.value}")


def create_embedding(config: ContextMcpConfig, **kwargs: Any) -> Embedding:
    """Create the embedding backend selected by the server configuration.

    Parameters
    - config: Resolved ``ContextMcpConfig``
    - kwargs: Forwarded to the backend (``client=`` in tests)
    """
    provider = config.embedding_provider
    model = config.embedding_model
    has_client = kwargs.get("client") is not None

    if provider == EmbeddingProviderName.OPENAI:
        if not has_client:
            _require(config.openai_api_key, "OPENAI_API_KEY", provider)
        embedding: Embedding = OpenAIEmbedding(
            api_key=config.openai_api_key,
            model=model,
            base_url=config.openai_base_url,
            **kwargs
        )

    elif provider == EmbeddingProviderName.VOYAGEAI:
        if not has_client:
            _require(config.voyageai_api_key, "VOYAGEAI_API_KEY", provider)
        embedding = VoyageAIEmbedding(api_key=config.voyageai_api_key, model=model, **kwargs)

    elif provider == EmbeddingProviderName.GEMINI:
        if not has_client:
            _require(config.gemini_api_key, "GEMINI_API_KEY", provider)
        embedding = GeminiEmbedding(api_key=config.gemini_api_key, model=model, **kwargs)

    elif provider == EmbeddingProviderName.OLLAMA:
        embedding = OllamaEmbedding(model=model, host=config.ollama_host, **kwargs)

    elif provider == EmbeddingProviderName.BEDROCK:
        embedding = BedrockEmbedding(
            model=model,
            region=config.aws_region,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
            session_token=config.aws_session_token,
            **kwargs
        )

    else:
        raise ValueError(f"Unsupported embedding provider: {provider}")

    logger.info("Created embedding provider", provider=embedding.get_provider(), model=model)
    return embedding
