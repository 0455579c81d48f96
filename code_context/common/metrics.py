"""Metrics collection for the indexing core.

Thin convenience wrapper around ``prometheus_client`` so the search manager
records embedding, search, and vector store activity with consistent labels.

Design notes
- Metrics and labels are predeclared to keep cardinality bounded
- Each collector owns its ``CollectorRegistry`` (inject one for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name of the owning service
    - registry: Optional custom ``CollectorRegistry``
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.embedding_requests = Counter(
            'context_embedding_requests_total',
            'Total embedding generation requests',
            ['provider', 'kind'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'context_embedding_duration_seconds',
            'Embedding generation duration',
            ['provider', 'kind'],
            registry=self.registry
        )

        self.embedded_texts = Counter(
            'context_embedded_texts_total',
            'Total texts sent for embedding',
            ['provider'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'context_search_requests_total',
            'Total search requests',
            ['query_type'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'context_search_duration_seconds',
            'Search duration',
            ['query_type'],
            registry=self.registry
        )

        self.vector_store_operations = Counter(
            'context_vector_store_operations_total',
            'Total vector store operations',
            ['operation', 'backend'],
            registry=self.registry
        )

    def record_embedding(self, provider: str, kind: str, count: int, duration: float) -> None:
        """Record an embedding call; ``kind`` is ``query`` or ``documents``."""
        self.embedding_requests.labels(provider=provider, kind=kind).inc()
        self.embedding_duration.labels(provider=provider, kind=kind).observe(duration)
        self.embedded_texts.labels(provider=provider).inc(count)

    def record_search(self, query_type: str, duration: float) -> None:
        """Record search metrics."""
        self.search_requests.labels(query_type=query_type).inc()
        self.search_duration.labels(query_type=query_type).observe(duration)

    def record_vector_store_operation(self, operation: str, backend: str) -> None:
        """Record vector store operation metrics."""
        self.vector_store_operations.labels(operation=operation, backend=backend).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format."""
        return generate_latest(self.registry).decode('utf-8')
