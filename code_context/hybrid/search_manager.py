"""Search manager for code chunk indexing and hybrid search.

Ties one ``Embedding`` provider to one ``VectorStore``. Each codebase gets
its own collection, named from a hash of its path; hybrid collections carry
a separate name so dense-only and hybrid indexes can coexist.

Search modes
- dense: embed the query, nearest-neighbour search with a score threshold
- hybrid: a dense request plus a lexical request over the raw query; the
  store fuses them (RRF in Milvus, rescoring in S3Vectors)
"""

import hashlib
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog

from code_context.common.batching import chunked
from code_context.common.config import (
    ContextMcpConfig,
    create_mcp_config,
    log_configuration_summary,
)
from code_context.common.logging import configure_logging, log_performance
from code_context.common.metrics import MetricsCollector
from code_context.embedding.base import Embedding
from code_context.embedding.factory import create_embedding
from code_context.ranking.fusion import HybridResultRanker
from code_context.vector_store.base import (
    HybridSearchRequest,
    VectorDocument,
    VectorSearchResult,
    VectorStore,
)
from code_context.vector_store.factory import create_vector_store

logger = structlog.get_logger("hybrid.search_manager")

INDEX_BATCH_SIZE = 100


def collection_name_for(codebase_path: str, hybrid: bool = True) -> str:
    """Collection holding a codebase's chunks: ``[hybrid_]code_chunks_<md5[:8]>``."""
    normalized = os.path.abspath(codebase_path)
    digest = hashlib.md5(normalized.encode("utf-8")).hexdigest()[:8]
    prefix = "hybrid_code_chunks" if hybrid else "code_chunks"
    return f"{prefix}_{digest}"


@dataclass
class CodeChunk:
    """A span of source text ready to be embedded."""
    content: str
    relative_path: str
    start_line: int
    end_line: int
    language: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def file_extension(self) -> str:
        return os.path.splitext(self.relative_path)[1]

    @property
    def chunk_id(self) -> str:
        """Stable id derived from location and content."""
        raw = f"{self.relative_path}:{self.start_line}:{self.end_line}:{self.content}"
        return "chunk_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class SearchManager:
    """Indexes code chunks and answers dense or hybrid queries.

    Parameters
    - embedding: Provider used for chunks and queries
    - vector_store: Backend holding one collection per codebase
    - ranker: Lexical rescoring applied by ``rerank``
    - metrics: Optional ``MetricsCollector``
    - batch_size: Chunks embedded and inserted per round
    """

    def __init__(
        self,
        embedding: Embedding,
        vector_store: VectorStore,
        ranker: Optional[HybridResultRanker] = None,
        metrics: Optional[MetricsCollector] = None,
        batch_size: int = INDEX_BATCH_SIZE,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.embedding = embedding
        self.vector_store = vector_store
        self.ranker = ranker or HybridResultRanker()
        self.metrics = metrics
        self.batch_size = batch_size

    @classmethod
    def from_config(
        cls,
        config: Optional[ContextMcpConfig] = None,
        setup_logging: bool = False,
        embedding: Optional[Embedding] = None,
        vector_store: Optional[VectorStore] = None,
        **kwargs: Any
    ) -> "SearchManager":
        """Build a manager from the resolved server configuration.

        Parameters
        - config: Resolved config; read from the environment when omitted
        - setup_logging: Configure structlog from ``config`` first
        - embedding / vector_store: Pre-built collaborators overriding the factories
        - kwargs: Forwarded to ``SearchManager`` (``metrics``, ``batch_size``)
        """
        config = config or create_mcp_config()
        if setup_logging:
            configure_logging(config.name, config.log_level, config.log_format)
        log_configuration_summary(config)

        return cls(
            embedding=embedding or create_embedding(config),
            vector_store=vector_store or create_vector_store(config),
            **kwargs
        )

    # Indexing

    def _ensure_collection(self, collection_name: str, hybrid: bool) -> None:
        if self.vector_store.has_collection(collection_name):
            return

        dimension = self.embedding.detect_dimension()
        description = f"Code chunks embedded with {self.embedding.get_provider()}"
        if hybrid:
            self.vector_store.create_hybrid_collection(collection_name, dimension, description)
        else:
            self.vector_store.create_collection(collection_name, dimension, description)
        self._record_store_operation("create_collection")

    def index_chunks(self, codebase_path: str, chunks: Sequence[CodeChunk], hybrid: bool = True) -> int:
        """Embed and store chunks; returns how many were indexed."""
        collection_name = collection_name_for(codebase_path, hybrid)
        self._ensure_collection(collection_name, hybrid)
        if not chunks:
            return 0

        start_time = time.time()
        indexed = 0
        for batch in chunked(chunks, self.batch_size):
            vectors = self._embed_documents([chunk.content for chunk in batch])
            documents = [
                VectorDocument(
                    id=chunk.chunk_id,
                    vector=vector.vector,
                    content=chunk.content,
                    relative_path=chunk.relative_path,
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                    file_extension=chunk.file_extension,
                    metadata={
                        **chunk.metadata,
                        "language": chunk.language or "unknown",
                        "codebase_path": codebase_path,
                    },
                )
                for chunk, vector in zip(batch, vectors)
            ]

            if hybrid:
                self.vector_store.insert_hybrid(collection_name, documents)
            else:
                self.vector_store.insert(collection_name, documents)
            self._record_store_operation("insert")
            indexed += len(documents)

        log_performance(
            "index_chunks",
            (time.time() - start_time) * 1000,
            collection=collection_name,
            count=indexed,
        )
        return indexed

    def _embed_documents(self, texts: List[str]):
        start_time = time.time()
        vectors = self.embedding.embed_batch(texts)
        if self.metrics:
            self.metrics.record_embedding(self.embedding.get_provider(), "documents", len(texts), time.time() - start_time)
        return vectors

    # Search

    def search(
        self,
        codebase_path: str,
        query: str,
        top_k: int = 10,
        threshold: float = 0.0,
        hybrid: bool = True
    ) -> List[VectorSearchResult]:
        """Search a codebase's collection.

        Returns an empty list when the codebase has not been indexed. The
        threshold applies to dense search only; fused hybrid scores are on
        a different scale.
        """
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        collection_name = collection_name_for(codebase_path, hybrid)
        if not self.vector_store.has_collection(collection_name):
            logger.warning("Codebase is not indexed", codebase_path=codebase_path, collection=collection_name)
            return []

        start_time = time.time()
        try:
            query_vector = self.embedding.embed(query)
            if self.metrics:
                self.metrics.record_embedding(
                    self.embedding.get_provider(), "query", 1, time.time() - start_time
                )

            if hybrid:
                requests = [
                    HybridSearchRequest(data=query_vector.vector, anns_field="vector", limit=top_k),
                    HybridSearchRequest(data=query, anns_field="sparse_vector", limit=top_k),
                ]
                results = self.vector_store.hybrid_search(collection_name, requests, limit=top_k)
                self._record_store_operation("hybrid_search")
            else:
                results = self.vector_store.search(
                    collection_name, query_vector.vector, top_k=top_k, threshold=threshold
                )
                self._record_store_operation("search")
        except Exception as e:
            logger.error("Search failed", collection=collection_name, query=query[:50], error=str(e))
            raise

        duration = time.time() - start_time
        query_type = "hybrid" if hybrid else "dense"
        if self.metrics:
            self.metrics.record_search(query_type, duration)

        logger.info(
            "Search completed",
            collection=collection_name,
            query_type=query_type,
            results_count=len(results),
        )
        log_performance("search", duration * 1000, collection=collection_name, query_type=query_type)
        return results

    def rerank(self, results: Sequence[VectorSearchResult], query: str, limit: Optional[int] = None) -> List[VectorSearchResult]:
        """Rescore dense results with the lexical signal."""
        return self.ranker.rank(results, query, limit)

    # Maintenance

    def delete_chunks(self, codebase_path: str, ids: Sequence[str], hybrid: bool = True) -> bool:
        """Delete chunks by id; ``False`` when the backend cannot delete."""
        collection_name = collection_name_for(codebase_path, hybrid)
        deleted = self.vector_store.delete(collection_name, ids)
        self._record_store_operation("delete")
        return deleted

    def clear_index(self, codebase_path: str, hybrid: bool = True) -> None:
        """Drop the codebase's collection if it exists."""
        collection_name = collection_name_for(codebase_path, hybrid)
        if not self.vector_store.has_collection(collection_name):
            logger.info("Nothing to clear", codebase_path=codebase_path, collection=collection_name)
            return

        self.vector_store.drop_collection(collection_name)
        self._record_store_operation("drop_collection")
        logger.info("Cleared index", codebase_path=codebase_path, collection=collection_name)

    def _record_store_operation(self, operation: str) -> None:
        if self.metrics:
            self.metrics.record_vector_store_operation(operation, self.vector_store.backend)
