"""Indexing and search orchestration over an embedding provider and a vector store."""
