"""Common utilities shared across the indexing core.

Includes:
- ``config``: pydantic-settings environment contract and the resolved MCP config.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``batching``: fixed-size chunking and sequential batch submission.

Import pattern:
- from code_context.common.config import create_mcp_config
- from code_context.common.logging import configure_logging
"""
