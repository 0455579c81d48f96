"""Fixed-size chunking for backends with a per-call batch ceiling.

S3Vectors, Bedrock, Milvus and the hosted embedding APIs all cap how many
items one request may carry. Callers partition their input with ``chunked``
and push it through ``submit_in_batches``, which is strictly sequential and
stops at the first failing chunk. Chunks already submitted stay submitted;
there is no rollback.
"""

from typing import Callable, Iterator, List, Sequence, TypeVar

import structlog

logger = structlog.get_logger("batching")

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def submit_in_batches(
    items: Sequence[T],
    batch_size: int,
    submit: Callable[[Sequence[T]], R],
    *,
    operation: str = "batch",
) -> List[R]:
    """Submit ``items`` chunk by chunk and collect each call's return value.

    Any exception raised by ``submit`` propagates immediately; later chunks
    are never sent.
    """
    results: List[R] = []
    total = len(items)
    batches = (total + batch_size - 1) // batch_size if batch_size > 0 else 0

    for index, chunk in enumerate(chunked(items, batch_size), start=1):
        logger.debug(
            "Submitting batch",
            operation=operation,
            batch=index,
            batches=batches,
            size=len(chunk),
        )
        results.append(submit(chunk))

    return results
