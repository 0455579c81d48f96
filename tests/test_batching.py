"""Tests for batch submission."""

import pytest

from code_context.common.batching import chunked, submit_in_batches


def test_submits_in_fixed_size_chunks():
    """250 items under a ceiling of 100 go out as 100, 100, 50."""
    calls = []

    results = submit_in_batches(list(range(250)), 100, lambda batch: calls.append(list(batch)) or len(batch))

    assert [len(call) for call in calls] == [100, 100, 50]
    assert results == [100, 100, 50]
    assert [item for call in calls for item in call] == list(range(250))


def test_first_failure_aborts_remaining_batches():
    calls = []

    def submit(batch):
        calls.append(batch)
        if len(calls) == 2:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        submit_in_batches(list(range(30)), 10, submit)

    assert len(calls) == 2


def test_empty_input_submits_nothing():
    calls = []
    assert submit_in_batches([], 10, calls.append) == []
    assert calls == []


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(chunked([1, 2, 3], 0))


def test_chunked_exact_multiple():
    assert [list(c) for c in chunked([1, 2, 3, 4], 2)] == [[1, 2], [3, 4]]
