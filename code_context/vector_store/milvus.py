"""Milvus implementation of vector store.

Uses ``pymilvus.MilvusClient``. Dense collections index ``vector`` with
AUTOINDEX/COSINE; hybrid collections add a ``sparse_vector`` field fed by a
server-side BM25 function over ``content`` so the lexical leg of hybrid
search runs inside Milvus and is fused with RRF.
"""

from typing import Any, Dict, List, Optional, Sequence

import structlog
from pymilvus import (
    AnnSearchRequest,
    DataType,
    Function,
    FunctionType,
    MilvusClient,
    RRFRanker,
)
from pymilvus.exceptions import MilvusException

from code_context.common.batching import submit_in_batches
from code_context.common.config import DEFAULT_MILVUS_ADDRESS

from .base import (
    HybridSearchRequest,
    VectorDocument,
    VectorSearchResult,
    VectorStore,
    VectorStoreConnectionError,
    VectorStoreError,
    VectorStoreQueryError,
)

logger = structlog.get_logger("vector_store.milvus")

INSERT_BATCH_SIZE = 1000
RRF_K = 100
OUTPUT_FIELDS = [
    "id",
    "content",
    "relativePath",
    "startLine",
    "endLine",
    "fileExtension",
    "metadata",
]


def normalize_address(address: str) -> str:
    """``host:port`` becomes ``http://host:port``; URIs and Milvus Lite files pass through."""
    if "://" in address or address.endswith(".db"):
        return address
    return f"http://{address}"


class MilvusVectorStore(VectorStore):
    """Milvus-backed vector store."""

    backend = "milvus"
    supports_delete = True

    def __init__(
        self,
        address: Optional[str] = None,
        token: Optional[str] = None,
        batch_size: int = INSERT_BATCH_SIZE,
        client: Optional[Any] = None,
    ):
        """Configure a Milvus-backed store.

        Parameters
        - address: Milvus endpoint (``localhost:19530`` when omitted)
        - token: Auth token (``user:password`` or a Zilliz Cloud API key)
        - batch_size: Rows per ``insert`` call
        - client: Pre-built ``MilvusClient`` (tests)
        """
        self.address = normalize_address(address or DEFAULT_MILVUS_ADDRESS)
        self.batch_size = batch_size

        if client is not None:
            self.client = client
        else:
            try:
                self.client = MilvusClient(uri=self.address, token=token or "")
            except MilvusException as e:
                logger.error("Failed to connect to Milvus", address=self.address, error=str(e))
                raise VectorStoreConnectionError(f"Failed to connect to Milvus at {self.address}: {e}") from e

    # Collections

    def _build_schema(self, dimension: int, description: Optional[str], hybrid: bool) -> Any:
        schema = MilvusClient.create_schema(
            auto_id=False,
            enable_dynamic_field=False,
            description=description or "",
        )
        schema.add_field(field_name="id", datatype=DataType.VARCHAR, max_length=512, is_primary=True)
        schema.add_field(field_name="vector", datatype=DataType.FLOAT_VECTOR, dim=dimension)
        schema.add_field(
            field_name="content",
            datatype=DataType.VARCHAR,
            max_length=65535,
            enable_analyzer=hybrid,
        )
        schema.add_field(field_name="relativePath", datatype=DataType.VARCHAR, max_length=1024)
        schema.add_field(field_name="startLine", datatype=DataType.INT64)
        schema.add_field(field_name="endLine", datatype=DataType.INT64)
        schema.add_field(field_name="fileExtension", datatype=DataType.VARCHAR, max_length=32)
        schema.add_field(field_name="metadata", datatype=DataType.JSON)

        if hybrid:
            schema.add_field(field_name="sparse_vector", datatype=DataType.SPARSE_FLOAT_VECTOR)
            schema.add_function(Function(
                name="content_bm25_emb",
                input_field_names=["content"],
                output_field_names=["sparse_vector"],
                function_type=FunctionType.BM25,
            ))
        return schema

    def _create(self, collection_name: str, dimension: int, description: Optional[str], hybrid: bool) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        try:
            if self.client.has_collection(collection_name=collection_name):
                logger.warning("Collection already exists", collection=collection_name)
                return

            index_params = self.client.prepare_index_params()
            index_params.add_index(field_name="vector", index_type="AUTOINDEX", metric_type="COSINE")
            if hybrid:
                index_params.add_index(
                    field_name="sparse_vector",
                    index_type="SPARSE_INVERTED_INDEX",
                    metric_type="BM25",
                )

            self.client.create_collection(
                collection_name=collection_name,
                schema=self._build_schema(dimension, description, hybrid),
                index_params=index_params,
            )
        except MilvusException as e:
            logger.error("Failed to create collection", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to create collection {collection_name}: {e}") from e

        logger.info("Created Milvus collection", collection=collection_name, dimension=dimension, hybrid=hybrid)

    def create_collection(self, collection_name: str, dimension: int, description: Optional[str] = None) -> None:
        self._create(collection_name, dimension, description, hybrid=False)

    def create_hybrid_collection(self, collection_name: str, dimension: int, description: Optional[str] = None) -> None:
        self._create(collection_name, dimension, description, hybrid=True)

    def drop_collection(self, collection_name: str) -> None:
        try:
            self.client.drop_collection(collection_name=collection_name)
        except MilvusException as e:
            raise VectorStoreError(f"Failed to drop collection {collection_name}: {e}") from e
        logger.info("Dropped Milvus collection", collection=collection_name)

    def has_collection(self, collection_name: str) -> bool:
        try:
            return bool(self.client.has_collection(collection_name=collection_name))
        except MilvusException as e:
            raise VectorStoreError(f"Failed to check collection {collection_name}: {e}") from e

    def list_collections(self) -> List[str]:
        try:
            return list(self.client.list_collections())
        except MilvusException as e:
            raise VectorStoreError(f"Failed to list collections: {e}") from e

    # Documents

    @staticmethod
    def _to_row(doc: VectorDocument) -> Dict[str, Any]:
        return {
            "id": doc.id,
            "vector": list(doc.vector),
            "content": doc.content,
            "relativePath": doc.relative_path,
            "startLine": doc.start_line,
            "endLine": doc.end_line,
            "fileExtension": doc.file_extension,
            "metadata": dict(doc.metadata),
        }

    def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return

        rows = [self._to_row(doc) for doc in documents]

        def submit(batch: Sequence[Dict[str, Any]]) -> Any:
            return self.client.insert(collection_name=collection_name, data=list(batch))

        try:
            submit_in_batches(rows, self.batch_size, submit, operation="milvus_insert")
        except MilvusException as e:
            logger.error("Failed to insert documents", collection=collection_name, count=len(rows), error=str(e))
            raise VectorStoreError(f"Failed to insert vectors into {collection_name}: {e}") from e

        logger.info("Inserted documents into Milvus", collection=collection_name, count=len(rows))

    def insert_hybrid(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        # sparse_vector is produced server-side by the BM25 function
        self.insert(collection_name, documents)

    @staticmethod
    def _to_search_result(hit: Any) -> VectorSearchResult:
        try:
            entity = hit["entity"]
            score = float(hit["distance"])
        except (KeyError, TypeError) as e:
            raise VectorStoreQueryError(f"Malformed Milvus search hit: missing {e}") from e

        document = VectorDocument(
            id=str(entity.get("id", hit.get("id", ""))),
            vector=[],
            content=entity.get("content", ""),
            relative_path=entity.get("relativePath", ""),
            start_line=int(entity.get("startLine", 0)),
            end_line=int(entity.get("endLine", 0)),
            file_extension=entity.get("fileExtension", ""),
            metadata=dict(entity.get("metadata") or {}),
        )
        return VectorSearchResult(document=document, score=score)

    def search(
        self,
        collection_name: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        threshold: float = 0.0
    ) -> List[VectorSearchResult]:
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        try:
            response = self.client.search(
                collection_name=collection_name,
                data=[list(query_vector)],
                anns_field="vector",
                limit=top_k,
                output_fields=OUTPUT_FIELDS,
                search_params={"metric_type": "COSINE", "params": {}},
            )
        except MilvusException as e:
            logger.error("Search failed", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to search in collection {collection_name}: {e}") from e

        hits = response[0] if response else []
        results = [self._to_search_result(hit) for hit in hits]
        return [result for result in results if result.score >= threshold]

    def hybrid_search(
        self,
        collection_name: str,
        search_requests: Sequence[HybridSearchRequest],
        limit: int = 10
    ) -> List[VectorSearchResult]:
        """Dense and BM25 legs searched server-side and fused with RRF."""
        if not search_requests:
            raise ValueError("At least one search request is required for hybrid search")

        requests = []
        for request in search_requests:
            if request.is_vector:
                param = request.param or {"metric_type": "COSINE", "params": {}}
                anns_field = request.anns_field
            else:
                param = request.param or {"params": {"drop_ratio_search": 0.2}}
                anns_field = request.anns_field if request.anns_field != "vector" else "sparse_vector"
            requests.append(AnnSearchRequest(
                data=[request.data],
                anns_field=anns_field,
                param=param,
                limit=request.limit,
            ))

        try:
            response = self.client.hybrid_search(
                collection_name=collection_name,
                reqs=requests,
                ranker=RRFRanker(RRF_K),
                limit=limit,
                output_fields=OUTPUT_FIELDS,
            )
        except MilvusException as e:
            logger.error("Hybrid search failed", collection=collection_name, error=str(e))
            raise VectorStoreError(f"Failed to run hybrid search in {collection_name}: {e}") from e

        hits = response[0] if response else []
        return [self._to_search_result(hit) for hit in hits]

    def delete(self, collection_name: str, ids: Sequence[str]) -> bool:
        if not ids:
            return True
        try:
            self.client.delete(collection_name=collection_name, ids=list(ids))
        except MilvusException as e:
            raise VectorStoreError(f"Failed to delete from {collection_name}: {e}") from e
        logger.info("Deleted documents from Milvus", collection=collection_name, count=len(ids))
        return True

    def query(
        self,
        collection_name: str,
        filter: str,
        output_fields: Sequence[str],
        limit: int = 10
    ) -> List[Dict[str, Any]]:
        try:
            return list(self.client.query(
                collection_name=collection_name,
                filter=filter,
                output_fields=list(output_fields),
                limit=limit,
            ))
        except MilvusException as e:
            raise VectorStoreError(f"Failed to query {collection_name}: {e}") from e
