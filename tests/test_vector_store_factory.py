"""Tests for vector store construction."""

import pytest

from code_context.common.config import ContextMcpConfig, EmbeddingProviderName, VectorDatabaseName
from code_context.vector_store.factory import VectorStoreFactory, VectorStoreType, create_vector_store
from code_context.vector_store.milvus import MilvusVectorStore
from code_context.vector_store.s3vectors import S3VectorsStore

from tests.fakes import FakeMilvusClient, FakeS3VectorsClient


def make_config(**overrides) -> ContextMcpConfig:
    values = {
        "embedding_provider": EmbeddingProviderName.OPENAI,
        "embedding_model": "text-embedding-3-small",
        "vector_database": VectorDatabaseName.MILVUS,
    }
    values.update(overrides)
    return ContextMcpConfig(**values)


def test_milvus_from_config():
    config = make_config(milvus_address="milvus.internal:19530")

    store = create_vector_store(config, client=FakeMilvusClient())

    assert isinstance(store, MilvusVectorStore)
    assert store.address == "http://milvus.internal:19530"


def test_s3vectors_from_config():
    config = make_config(
        vector_database=VectorDatabaseName.S3VECTORS,
        s3_vectors_bucket_name="code-vectors",
        aws_region="eu-west-1",
    )

    store = create_vector_store(config, client=FakeS3VectorsClient())

    assert isinstance(store, S3VectorsStore)
    assert store.bucket_name == "code-vectors"
    assert store.region == "eu-west-1"


def test_s3vectors_requires_bucket():
    with pytest.raises(ValueError, match="bucket_name"):
        VectorStoreFactory.create(VectorStoreType.S3VECTORS, {}, client=FakeS3VectorsClient())


def test_unknown_store_type():
    with pytest.raises(ValueError):
        VectorStoreFactory.create("redis", {})
