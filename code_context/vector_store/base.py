"""Base vector store interface.

Defines the contract the search manager depends on, independent of the
backing implementation (Milvus, S3Vectors).

All methods are synchronous: every call runs to completion, blocking on the
backend SDK, before it returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union


@dataclass(frozen=True)
class VectorDocument:
    """A code chunk and its embedding as stored in a collection."""
    id: str
    vector: List[float]
    content: str
    relative_path: str
    start_line: int
    end_line: int
    file_extension: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def language(self) -> str:
        return self.metadata.get("language") or "unknown"

    @property
    def codebase_path(self) -> str:
        return self.metadata.get("codebase_path") or ""


@dataclass(frozen=True)
class VectorSearchResult:
    """A retrieved document and its relevance score (higher is better)."""
    document: VectorDocument
    score: float


@dataclass(frozen=True)
class HybridSearchRequest:
    """One leg of a hybrid search.

    ``data`` is a dense query vector for the semantic leg or the raw query
    string for the lexical leg.
    """
    data: Union[List[float], str]
    anns_field: str = "vector"
    param: Dict[str, Any] = field(default_factory=dict)
    limit: int = 10

    @property
    def is_vector(self) -> bool:
        return isinstance(self.data, list)

    @property
    def is_text(self) -> bool:
        return isinstance(self.data, str)


class VectorStore(ABC):
    """Abstract base class for vector stores.

    ``supports_delete`` tells callers whether ``delete`` can remove vectors.
    Backends without that capability log a warning and return ``False``;
    callers must not assume deletion happened.
    """

    backend: str = "unknown"
    supports_delete: bool = True

    @abstractmethod
    def create_collection(
        self,
        collection_name: str,
        dimension: int,
        description: Optional[str] = None
    ) -> None:
        """Create a dense-vector collection."""
        pass

    @abstractmethod
    def create_hybrid_collection(
        self,
        collection_name: str,
        dimension: int,
        description: Optional[str] = None
    ) -> None:
        """Create a collection that can serve hybrid (dense + lexical) search."""
        pass

    @abstractmethod
    def drop_collection(self, collection_name: str) -> None:
        """Drop a collection and everything stored in it."""
        pass

    @abstractmethod
    def has_collection(self, collection_name: str) -> bool:
        """Check whether a collection exists."""
        pass

    @abstractmethod
    def list_collections(self) -> List[str]:
        """List collection names known to this store."""
        pass

    @abstractmethod
    def insert(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        """Insert documents into a dense-vector collection."""
        pass

    @abstractmethod
    def insert_hybrid(self, collection_name: str, documents: Sequence[VectorDocument]) -> None:
        """Insert documents into a hybrid collection."""
        pass

    @abstractmethod
    def search(
        self,
        collection_name: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        threshold: float = 0.0
    ) -> List[VectorSearchResult]:
        """Nearest-neighbour search.

        Returns at most ``top_k`` results sorted by descending score, none
        scoring below ``threshold``.
        """
        pass

    @abstractmethod
    def hybrid_search(
        self,
        collection_name: str,
        search_requests: Sequence[HybridSearchRequest],
        limit: int = 10
    ) -> List[VectorSearchResult]:
        """Combine a dense and a lexical request into one ranked list."""
        pass

    @abstractmethod
    def delete(self, collection_name: str, ids: Sequence[str]) -> bool:
        """Delete documents by id.

        Returns ``True`` if the backend deleted them, ``False`` if the
        backend cannot delete individual vectors (nothing was removed).
        """
        pass

    @abstractmethod
    def query(
        self,
        collection_name: str,
        filter: str,
        output_fields: Sequence[str],
        limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Scalar query by filter expression."""
        pass


class VectorStoreError(Exception):
    """Base exception for vector store operations."""
    pass


class VectorStoreConnectionError(VectorStoreError):
    """Connection error to vector store."""
    pass


class VectorStoreQueryError(VectorStoreError):
    """Query error or malformed response from the vector store."""
    pass


class CollectionNotFoundError(VectorStoreError):
    """Operation on a collection that does not exist."""

    def __init__(self, collection_name: str):
        super().__init__(f"Collection '{collection_name}' does not exist")
        self.collection_name = collection_name
