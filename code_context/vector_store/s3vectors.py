"""AWS S3Vectors implementation of vector store.

Each collection maps to one index inside a single vector bucket. The bucket
is created on first use. Vectors are stored as float32 with cosine distance;
distances are turned into similarity scores (``1 - distance``) so callers
rank every backend the same way.

Limitations
- No native lexical search: ``hybrid_search`` over-fetches vector hits and
  rescores them with ``HybridResultRanker``
- ``delete`` and ``query`` are not supported; both log a warning and
  return without effect (``delete`` returns ``False``)
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import boto3
import numpy as np
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from code_context.common.batching import submit_in_batches
from code_context.common.config import DEFAULT_AWS_REGION
from code_context.ranking.fusion import HybridResultRanker

from .base import (
    CollectionNotFoundError,
    HybridSearchRequest,
    VectorDocument,
    VectorSearchResult,
    VectorStore,
    VectorStoreError,
    VectorStoreQueryError,
)

logger = structlog.get_logger("vector_store.s3vectors")

PUT_VECTORS_BATCH_SIZE = 100
NOT_FOUND_CODES = {"NotFoundException", "ResourceNotFoundException"}
SDK_ERRORS = (BotoCoreError, ClientError)


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def get_index_name(collection_name: str) -> str:
    """Index name for a collection: unsupported characters become ``-``."""
    return f"{re.sub(r'[^a-zA-Z0-9-]', '-', collection_name)}-index"


@dataclass
class CollectionMetadata:
    """What this adapter knows about a collection's index."""
    name: str
    dimension: int
    index_name: str
    description: Optional[str] = None
    is_hybrid: bool = False
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class S3VectorsStore(VectorStore):
    """S3Vectors-backed vector store."""

    backend = "s3vectors"
    supports_delete = False

    def __init__(
        self,
        bucket_name: str,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        batch_size: int = PUT_VECTORS_BATCH_SIZE,
        ranker: Optional[HybridResultRanker] = None,
        client: Optional[Any] = None,
    ):
        """Configure an S3Vectors-backed store.

        Parameters
        - bucket_name: Vector bucket holding one index per collection
        - region: AWS region (``us-east-1`` when omitted)
        - access_key_id / secret_access_key / session_token: Explicit
          credentials; used only when both key id and secret are given,
          otherwise boto3's default credential chain applies
        - batch_size: Vectors per ``put_vectors`` call
        - ranker: Ranker for simulated hybrid search
        - client: Pre-built ``s3vectors`` client (tests, custom sessions)
        """
        if not bucket_name:
            raise ValueError("S3Vectors requires a bucket name")

        self.bucket_name = bucket_name
        self.region = region or DEFAULT_AWS_REGION
        self.batch_size = batch_size
        self.ranker = ranker or HybridResultRanker()
        self._collections: Dict[str, CollectionMetadata] = {}
        self.client = client or self._build_client(access_key_id, secret_access_key, session_token)

    def _build_client(
        self,
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        session_token: Optional[str],
    ) -> Any:
        kwargs: Dict[str, Any] = {"region_name": self.region}
        if access_key_id and secret_access_key:
            kwargs["aws_access_key_id"] = access_key_id
            kwargs["aws_secret_access_key"] = secret_access_key
            if session_token:
                kwargs["aws_session_token"] = session_token
        return boto3.client("s3vectors", **kwargs)

    def _paginate(self, method: Callable[..., Dict[str, Any]], key: str, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Follow ``nextToken`` through a list call."""
        while True:
            response = method(**kwargs)
            for item in response.get(key, []):
                yield item
            token = response.get("nextToken")
            if not token:
                return
            kwargs["nextToken"] = token

    # Collections

    def create_collection(self, collection_name: str, dimension: int, description: Optional[str] = None) -> None:
        self._create_collection(collection_name, dimension, description, is_hybrid=False)

    def create_hybrid_collection(self, collection_name: str, dimension: int, description: Optional[str] = None) -> None:
        self._create_collection(collection_name, dimension, description, is_hybrid=True)

    def _create_collection(
        self,
        collection_name: str,
        dimension: int,
        description: Optional[str],
        is_hybrid: bool,
    ) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        index_name = get_index_name(collection_name)
        metadata = CollectionMetadata(
            name=collection_name,
            dimension=dimension,
            index_name=index_name,
            description=description or f"Index for collection {collection_name}",
            is_hybrid=is_hybrid,
        )

        self._ensure_vector_bucket()

        try:
            self.client.create_index(
                vectorBucketName=self.bucket_name,
                indexName=index_name,
                dataType="float32",
                dimension=dimension,
                distanceMetric="cosine",
                metadataConfiguration={"nonFilterableMetadataKeys": ["content"]},
            )
        except SDK_ERRORS as e:
            if _error_code(e) == "ConflictException":
                logger.warning("Collection already exists", collection=collection_name, index_name=index_name)
                self._collections[collection_name] = metadata
                return
            logger.error("Failed to create collection", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to create collection {collection_name}: {e}") from e

        self._collections[collection_name] = metadata
        logger.info(
            "Created S3Vectors collection",
            collection=collection_name,
            dimension=dimension,
            hybrid=is_hybrid,
        )

    def _ensure_vector_bucket(self) -> None:
        """Create the vector bucket unless it already exists."""
        try:
            buckets = self._paginate(self.client.list_vector_buckets, "vectorBuckets")
            if any(bucket.get("vectorBucketName") == self.bucket_name for bucket in buckets):
                return
            self.client.create_vector_bucket(vectorBucketName=self.bucket_name)
            logger.info("Created S3Vectors bucket", bucket=self.bucket_name)
        except SDK_ERRORS as e:
            if _error_code(e) == "ConflictException":
                return
            logger.error("Failed to ensure vector bucket", bucket=self.bucket_name, error=str(e))
            raise VectorStoreError(f"Failed to ensure vector bucket: {e}") from e

    def _describe_index(self, index_name: str) -> Optional[Dict[str, Any]]:
        """Return the index description, or ``None`` when it does not exist."""
        try:
            response = self.client.get_index(vectorBucketName=self.bucket_name, indexName=index_name)
        except SDK_ERRORS as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise VectorStoreError(f"Failed to describe index {index_name}: {e}") from e

        index = response.get("index")
        if not isinstance(index, dict):
            raise VectorStoreQueryError(f"Malformed get_index response for {index_name}: missing 'index'")
        return index

    def _resolve_collection(self, collection_name: str) -> CollectionMetadata:
        """Cached metadata, falling back to the service for indexes created elsewhere."""
        metadata = self._collections.get(collection_name)
        if metadata is not None:
            return metadata

        index_name = get_index_name(collection_name)
        index = self._describe_index(index_name)
        if index is None:
            raise CollectionNotFoundError(collection_name)

        metadata = CollectionMetadata(
            name=collection_name,
            dimension=int(index.get("dimension", 0)),
            index_name=index_name,
        )
        self._collections[collection_name] = metadata
        return metadata

    def drop_collection(self, collection_name: str) -> None:
        try:
            metadata = self._resolve_collection(collection_name)
        except CollectionNotFoundError:
            logger.warning("Collection does not exist", collection=collection_name)
            return

        try:
            self.client.delete_index(vectorBucketName=self.bucket_name, indexName=metadata.index_name)
        except SDK_ERRORS as e:
            logger.error("Failed to drop collection", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to drop collection {collection_name}: {e}") from e

        self._collections.pop(collection_name, None)
        logger.info("Dropped S3Vectors collection", collection=collection_name)

    def has_collection(self, collection_name: str) -> bool:
        index_name = get_index_name(collection_name)
        index = self._describe_index(index_name)
        if index is None:
            self._collections.pop(collection_name, None)
            return False

        if collection_name not in self._collections:
            self._collections[collection_name] = CollectionMetadata(
                name=collection_name,
                dimension=int(index.get("dimension", 0)),
                index_name=index_name,
            )
        return True

    def list_collections(self) -> List[str]:
        """Collections created or looked up through this instance."""
        return list(self._collections)

    # Documents

    def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        self._insert(collection_name, documents)

    def insert_hybrid(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        self._insert(collection_name, documents)

    def _insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        metadata = self._resolve_collection(collection_name)
        if not documents:
            return

        vectors = [self._to_s3_vector(doc) for doc in documents]

        def put(batch: Sequence[Dict[str, Any]]) -> None:
            self.client.put_vectors(
                vectorBucketName=self.bucket_name,
                indexName=metadata.index_name,
                vectors=list(batch),
            )

        try:
            submit_in_batches(vectors, self.batch_size, put, operation="put_vectors")
        except SDK_ERRORS as e:
            logger.error(
                "Failed to insert vectors",
                collection=collection_name,
                count=len(documents),
                error=str(e)
            )
            raise VectorStoreError(f"Failed to insert vectors into {collection_name}: {e}") from e

        logger.info("Inserted vectors into S3Vectors", collection=collection_name, count=len(documents))

    @staticmethod
    def _to_s3_vector(doc: VectorDocument) -> Dict[str, Any]:
        return {
            "key": doc.id,
            "data": {"float32": np.asarray(doc.vector, dtype=np.float32).tolist()},
            "metadata": {
                "content": doc.content,
                "relativePath": doc.relative_path,
                "startLine": str(doc.start_line),
                "endLine": str(doc.end_line),
                "fileExtension": doc.file_extension,
                "language": doc.language,
                "codebasePath": doc.codebase_path,
            },
        }

    @staticmethod
    def _to_search_result(item: Dict[str, Any]) -> VectorSearchResult:
        if "key" not in item:
            raise VectorStoreQueryError("Malformed query_vectors result: missing 'key'")
        if "distance" not in item:
            raise VectorStoreQueryError(f"Malformed query_vectors result for {item['key']}: missing 'distance'")

        metadata = item.get("metadata") or {}
        data = item.get("data") or {}
        document = VectorDocument(
            id=item["key"],
            vector=list(data.get("float32", [])),
            content=metadata.get("content", ""),
            relative_path=metadata.get("relativePath", ""),
            start_line=int(metadata.get("startLine", 0)),
            end_line=int(metadata.get("endLine", 0)),
            file_extension=metadata.get("fileExtension", ""),
            metadata={
                "language": metadata.get("language", "unknown"),
                "codebase_path": metadata.get("codebasePath", ""),
            },
        )
        return VectorSearchResult(document=document, score=1.0 - float(item["distance"]))

    # Search

    def search(
        self,
        collection_name: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        threshold: float = 0.0
    ) -> List[VectorSearchResult]:
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        metadata = self._resolve_collection(collection_name)

        try:
            response = self.client.query_vectors(
                vectorBucketName=self.bucket_name,
                indexName=metadata.index_name,
                topK=top_k,
                queryVector={"float32": np.asarray(query_vector, dtype=np.float32).tolist()},
                returnMetadata=True,
                returnDistance=True,
            )
        except SDK_ERRORS as e:
            logger.error("Search failed", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to search in collection {collection_name}: {e}") from e

        if "vectors" not in response:
            raise VectorStoreQueryError(
                f"Malformed query_vectors response for {collection_name}: missing 'vectors'"
            )

        results = [self._to_search_result(item) for item in response["vectors"]]
        results = [result for result in results if result.score >= threshold]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def hybrid_search(
        self,
        collection_name: str,
        search_requests: Sequence[HybridSearchRequest],
        limit: int = 10
    ) -> List[VectorSearchResult]:
        """Vector search over-fetched to ``2 * limit``, rescored by the query text."""
        vector_request = next((request for request in search_requests if request.is_vector), None)
        if vector_request is None:
            raise ValueError("At least one vector search request is required for hybrid search")

        vector_results = self.search(collection_name, vector_request.data, top_k=limit * 2)

        text_request = next((request for request in search_requests if request.is_text), None)
        if text_request is not None:
            return self.ranker.rank(vector_results, text_request.data, limit)

        return vector_results[:limit]

    def delete(self, collection_name: str, ids: Sequence[str]) -> bool:
        """Not supported: logs a warning and removes nothing."""
        self._resolve_collection(collection_name)
        logger.warning(
            "S3Vectors does not support deleting individual vectors; nothing was deleted",
            collection=collection_name,
            ids=list(ids),
        )
        return False

    def query(
        self,
        collection_name: str,
        filter: str,
        output_fields: Sequence[str],
        limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Not supported: logs a warning and returns no rows."""
        self._resolve_collection(collection_name)
        logger.warning(
            "S3Vectors does not support metadata queries; use search with post-filtering",
            collection=collection_name,
            filter=filter,
        )
        return []

    # Introspection

    def get_connection_info(self) -> Dict[str, str]:
        return {"bucket_name": self.bucket_name, "region": self.region}

    def get_collection_stats(self, collection_name: str) -> Dict[str, Any]:
        """Dimension and index name as reported by the service."""
        metadata = self._resolve_collection(collection_name)
        index = self._describe_index(metadata.index_name)
        if index is None:
            raise CollectionNotFoundError(collection_name)
        return {
            "dimension": int(index.get("dimension", metadata.dimension)),
            "index_name": metadata.index_name,
        }

    def list_indexes(self) -> List[Dict[str, Any]]:
        """All indexes in the bucket, including ones this instance never touched."""
        try:
            return list(self._paginate(self.client.list_indexes, "indexes", vectorBucketName=self.bucket_name))
        except SDK_ERRORS as e:
            raise VectorStoreError(f"Failed to list indexes: {e}") from e
