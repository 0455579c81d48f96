"""Embedding providers.

- ``base``: the ``Embedding`` interface, ``EmbeddingVector`` and ``EmbeddingError``
- ``*_backend``: one module per vendor SDK (OpenAI, VoyageAI, Gemini,
  Ollama, AWS Bedrock)
- ``factory``: ``create_embedding(config)`` picks the backend once at startup
"""
