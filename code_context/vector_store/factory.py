"""Vector store factory for creating different implementations.

Centralizes creation of concrete ``VectorStore`` backends so callers don't
depend on implementation details. The backend is chosen once, from the
resolved ``ContextMcpConfig``.
"""

from enum import Enum
from typing import Any, Dict

import structlog

from code_context.common.config import ContextMcpConfig, VectorDatabaseName

from .base import VectorStore
from .milvus import MilvusVectorStore
from .s3vectors import S3VectorsStore

logger = structlog.get_logger("vector_store.factory")


class VectorStoreType(Enum):
    """Supported vector store types."""
    MILVUS = "milvus"
    S3VECTORS = "s3vectors"


class VectorStoreFactory:
    """Factory for creating vector store instances."""

    @staticmethod
    def create(
        store_type: VectorStoreType,
        config: Dict[str, Any],
        **kwargs: Any
    ) -> VectorStore:
        """Create a vector store instance.

        Parameters
        - store_type: A ``VectorStoreType`` enum value
        - config: Backend-specific parameters (e.g., bucket name for S3Vectors)
        - kwargs: Additional overrides forwarded to the implementation (``client=``)
        """

        if store_type == VectorStoreType.MILVUS:
            return MilvusVectorStore(
                address=config.get("address"),
                token=config.get("token"),
                **kwargs
            )

        elif store_type == VectorStoreType.S3VECTORS:
            bucket_name = config.get("bucket_name")
            if not bucket_name:
                raise ValueError("S3Vectors requires 'bucket_name' in config")

            return S3VectorsStore(
                bucket_name=bucket_name,
                region=config.get("region"),
                access_key_id=config.get("access_key_id"),
                secret_access_key=config.get("secret_access_key"),
                session_token=config.get("session_token"),
                **kwargs
            )

        else:
            raise ValueError(f"Unsupported vector store type: {store_type}")


def create_vector_store(config: ContextMcpConfig, **kwargs: Any) -> VectorStore:
    """Create the vector store selected by the server configuration.

    Parameters
    - config: Resolved ``ContextMcpConfig``
    - kwargs: Forwarded to the implementation (``client=`` in tests)
    """
    if config.vector_database == VectorDatabaseName.S3VECTORS:
        store_type = VectorStoreType.S3VECTORS
        store_config = {
            "bucket_name": config.s3_vectors_bucket_name,
            "region": config.aws_region,
            "access_key_id": config.aws_access_key_id,
            "secret_access_key": config.aws_secret_access_key,
            "session_token": config.aws_session_token,
        }
    else:
        store_type = VectorStoreType.MILVUS
        store_config = {
            "address": config.milvus_address,
            "token": config.milvus_token,
        }

    logger.info("Creating vector store", backend=store_type.value)
    return VectorStoreFactory.create(store_type, store_config, **kwargs)
