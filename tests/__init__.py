"""Tests for the code context indexing core.

SDK clients are replaced by the in-memory fakes in ``tests.fakes``; nothing
here talks to a real embedding API or vector database.
"""
