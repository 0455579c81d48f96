"""Configuration management for the code context MCP server.

This module centralizes the environment-driven configuration of the server:
which embedding provider and vector database to use, the model to ask for,
and the credentials each backend needs. It builds on
``pydantic_settings.BaseSettings`` so values can come from environment
variables, a ``.env`` file, or defaults.

Highlights
- ``ContextSettings`` mirrors the flat environment contract one-to-one
- ``create_mcp_config`` applies defaults and precedence rules once and
  returns an immutable ``ContextMcpConfig``
- Collaborators receive the config object at construction time; nothing
  downstream reads ``os.environ``

Usage
- ``config = create_mcp_config()``
- ``log_configuration_summary(config)`` at startup
"""

from enum import Enum
from typing import Any, Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger("config")

DEFAULT_SERVER_NAME = "Context MCP Server"
DEFAULT_SERVER_VERSION = "1.0.0"
DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"
DEFAULT_MILVUS_ADDRESS = "localhost:19530"
DEFAULT_AWS_REGION = "us-east-1"


class EmbeddingProviderName(str, Enum):
    """Supported embedding providers."""
    OPENAI = "OpenAI"
    VOYAGEAI = "VoyageAI"
    GEMINI = "Gemini"
    OLLAMA = "Ollama"
    BEDROCK = "Bedrock"

    @classmethod
    def parse(cls, value: str) -> "EmbeddingProviderName":
        """Match a provider name case-insensitively (``ollama`` -> ``Ollama``)."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        supported = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported embedding provider: {value!r} (expected one of {supported})")


class VectorDatabaseName(str, Enum):
    """Supported vector databases."""
    MILVUS = "Milvus"
    S3VECTORS = "S3Vectors"


DEFAULT_MODELS: Dict[EmbeddingProviderName, str] = {
    EmbeddingProviderName.OPENAI: "text-embedding-3-small",
    EmbeddingProviderName.VOYAGEAI: "voyage-code-3",
    EmbeddingProviderName.GEMINI: "gemini-embedding-001",
    EmbeddingProviderName.OLLAMA: "nomic-embed-text",
    EmbeddingProviderName.BEDROCK: "amazon.titan-embed-text-v2:0",
}


class ContextSettings(BaseSettings):
    """Raw environment contract.

    Field names match the environment variable names (case-insensitive).
    Empty variables are treated as unset so ``FOO=`` falls back to defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    # Server
    mcp_server_name: str = DEFAULT_SERVER_NAME
    mcp_server_version: str = DEFAULT_SERVER_VERSION

    # Embedding provider selection
    embedding_provider: Optional[str] = None
    embedding_model: Optional[str] = None

    # Provider API keys
    openai_api_key: Optional[str] = Field(default=None, repr=False)
    openai_base_url: Optional[str] = None
    voyageai_api_key: Optional[str] = Field(default=None, repr=False)
    gemini_api_key: Optional[str] = Field(default=None, repr=False)

    # AWS / Bedrock
    aws_region: Optional[str] = None
    aws_access_key_id: Optional[str] = Field(default=None, repr=False)
    aws_secret_access_key: Optional[str] = Field(default=None, repr=False)
    aws_session_token: Optional[str] = Field(default=None, repr=False)
    bedrock_embedding_model: Optional[str] = None

    # Ollama
    ollama_host: Optional[str] = None
    ollama_model: Optional[str] = None

    # Vector databases
    milvus_address: Optional[str] = None
    milvus_token: Optional[str] = Field(default=None, repr=False)
    s3_vectors_bucket_name: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"


class ContextMcpConfig(BaseModel):
    """Resolved, immutable server configuration.

    Built by ``create_mcp_config``; passed explicitly to the embedding and
    vector store factories.
    """

    model_config = ConfigDict(frozen=True)

    name: str = DEFAULT_SERVER_NAME
    version: str = DEFAULT_SERVER_VERSION

    embedding_provider: EmbeddingProviderName
    embedding_model: str

    openai_api_key: Optional[str] = Field(default=None, repr=False)
    openai_base_url: Optional[str] = None
    voyageai_api_key: Optional[str] = Field(default=None, repr=False)
    gemini_api_key: Optional[str] = Field(default=None, repr=False)

    aws_region: Optional[str] = None
    aws_access_key_id: Optional[str] = Field(default=None, repr=False)
    aws_secret_access_key: Optional[str] = Field(default=None, repr=False)
    aws_session_token: Optional[str] = Field(default=None, repr=False)
    bedrock_model: Optional[str] = None

    ollama_host: str = DEFAULT_OLLAMA_HOST
    ollama_model: Optional[str] = None

    vector_database: VectorDatabaseName
    milvus_address: Optional[str] = None
    milvus_token: Optional[str] = Field(default=None, repr=False)
    s3_vectors_bucket_name: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "console"


def get_default_model_for_provider(provider: EmbeddingProviderName) -> str:
    """Default embedding model for a provider."""
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS[EmbeddingProviderName.OPENAI])


def get_embedding_model_for_provider(
    provider: EmbeddingProviderName,
    settings: ContextSettings
) -> str:
    """Pick the embedding model honouring provider-specific overrides.

    - Ollama: ``OLLAMA_MODEL`` > ``EMBEDDING_MODEL`` > default
    - Bedrock: ``BEDROCK_EMBEDDING_MODEL`` > ``EMBEDDING_MODEL`` > default
    - others: ``EMBEDDING_MODEL`` > default
    """
    if provider == EmbeddingProviderName.OLLAMA:
        specific = settings.ollama_model
    elif provider == EmbeddingProviderName.BEDROCK:
        specific = settings.bedrock_embedding_model
    else:
        specific = None

    return specific or settings.embedding_model or get_default_model_for_provider(provider)


def resolve_embedding_provider(settings: ContextSettings) -> EmbeddingProviderName:
    """Explicit ``EMBEDDING_PROVIDER`` wins; otherwise Bedrock when AWS is configured."""
    if settings.embedding_provider:
        return EmbeddingProviderName.parse(settings.embedding_provider)
    if settings.aws_region or settings.aws_access_key_id:
        return EmbeddingProviderName.BEDROCK
    return EmbeddingProviderName.OPENAI


def resolve_vector_database(settings: ContextSettings) -> VectorDatabaseName:
    """S3Vectors when a bucket is configured, Milvus otherwise."""
    if settings.s3_vectors_bucket_name:
        return VectorDatabaseName.S3VECTORS
    return VectorDatabaseName.MILVUS


def create_mcp_config(settings: Optional[ContextSettings] = None) -> ContextMcpConfig:
    """Resolve the server configuration.

    Parameters
    - settings: Pre-built ``ContextSettings``; read from the environment when omitted

    Returns
    - A frozen ``ContextMcpConfig``
    """
    settings = settings if settings is not None else ContextSettings()
    provider = resolve_embedding_provider(settings)

    return ContextMcpConfig(
        name=settings.mcp_server_name,
        version=settings.mcp_server_version,
        embedding_provider=provider,
        embedding_model=get_embedding_model_for_provider(provider, settings),
        openai_api_key=settings.openai_api_key,
        openai_base_url=settings.openai_base_url,
        voyageai_api_key=settings.voyageai_api_key,
        gemini_api_key=settings.gemini_api_key,
        aws_region=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        aws_session_token=settings.aws_session_token,
        bedrock_model=settings.bedrock_embedding_model,
        ollama_host=settings.ollama_host or DEFAULT_OLLAMA_HOST,
        ollama_model=settings.ollama_model,
        vector_database=resolve_vector_database(settings),
        milvus_address=settings.milvus_address,
        milvus_token=settings.milvus_token,
        s3_vectors_bucket_name=settings.s3_vectors_bucket_name,
        log_level=settings.log_level,
        log_format=settings.log_format,
    )


def configuration_summary(config: ContextMcpConfig) -> Dict[str, Any]:
    """Loggable view of the config: secrets are reduced to presence flags."""
    summary: Dict[str, Any] = {
        "server": f"{config.name} v{config.version}",
        "embedding_provider": config.embedding_provider.value,
        "embedding_model": config.embedding_model,
        "vector_database": config.vector_database.value,
    }

    if config.vector_database == VectorDatabaseName.S3VECTORS:
        summary["s3_vectors_bucket"] = config.s3_vectors_bucket_name
        summary["aws_region"] = config.aws_region or DEFAULT_AWS_REGION
    else:
        summary["milvus_address"] = config.milvus_address or DEFAULT_MILVUS_ADDRESS
        summary["milvus_token_configured"] = bool(config.milvus_token)

    provider = config.embedding_provider
    if provider == EmbeddingProviderName.OPENAI:
        summary["openai_api_key_configured"] = bool(config.openai_api_key)
        if config.openai_base_url:
            summary["openai_base_url"] = config.openai_base_url
    elif provider == EmbeddingProviderName.VOYAGEAI:
        summary["voyageai_api_key_configured"] = bool(config.voyageai_api_key)
    elif provider == EmbeddingProviderName.GEMINI:
        summary["gemini_api_key_configured"] = bool(config.gemini_api_key)
    elif provider == EmbeddingProviderName.OLLAMA:
        summary["ollama_host"] = config.ollama_host
    elif provider == EmbeddingProviderName.BEDROCK:
        summary["aws_region"] = config.aws_region or DEFAULT_AWS_REGION
        summary["aws_credentials_configured"] = bool(config.aws_access_key_id)

    return summary


def log_configuration_summary(config: ContextMcpConfig) -> None:
    """Log one structured startup summary of the resolved configuration."""
    logger.info("Starting context MCP server", **configuration_summary(config))
