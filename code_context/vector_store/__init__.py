"""Vector store adapters and utilities.

Primary components:
- ``base``: abstract ``VectorStore`` interface, document/result records, and
  common exceptions.
- ``milvus``: Milvus implementation with server-side BM25 hybrid search.
- ``s3vectors``: AWS S3Vectors implementation with simulated hybrid search.
- ``factory``: helpers to construct a store from the resolved server config.

Guidance:
- Prefer constructing via ``factory.create_vector_store`` so callers remain
  decoupled from specific backends.
"""
