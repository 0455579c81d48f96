"""Indexing and search core for the code context MCP server.

Subpackages:
- ``code_context.common``: configuration, logging, metrics, and batching helpers.
- ``code_context.embedding``: embedding provider interface and vendor backends.
- ``code_context.vector_store``: vector store interface plus Milvus and S3Vectors.
- ``code_context.ranking``: hybrid result fusion.
- ``code_context.hybrid``: the ``SearchManager`` that ties the pieces together.

Usage:
- Resolve configuration once with ``create_mcp_config()`` and hand the result
  to ``SearchManager.from_config``; nothing here reads the environment later.
"""

__version__ = "1.0.0"
