"""Tests for hybrid result ranking."""

import pytest

from code_context.ranking import HybridResultRanker, rank
from code_context.ranking.fusion import compile_terms, text_score, tokenize_query
from code_context.vector_store.base import VectorDocument, VectorSearchResult


def make_result(doc_id: str, score: float, content: str = "") -> VectorSearchResult:
    document = VectorDocument(
        id=doc_id,
        vector=[],
        content=content,
        relative_path=f"{doc_id}.py",
        start_line=1,
        end_line=2,
        file_extension=".py",
    )
    return VectorSearchResult(document=document, score=score)


def test_empty_query_orders_by_weighted_vector_score():
    """With no query terms the combined score is 0.7 * vector score."""
    results = [make_result("a", 0.2), make_result("b", 0.9), make_result("c", 0.5)]

    ranked = rank(results, "")

    assert [r.document.id for r in ranked] == ["b", "c", "a"]
    assert [r.score for r in ranked] == pytest.approx([0.63, 0.35, 0.14])


def test_single_match_in_hundred_chars_scores_one():
    content = "foo" + "x" * 97
    patterns = compile_terms(tokenize_query("foo"))

    assert len(content) == 100
    assert text_score(content, patterns) == pytest.approx(1.0)


def test_text_score_is_length_normalised():
    content = "foo " * 50  # 200 chars, 50 matches
    assert text_score(content, compile_terms(["foo"])) == pytest.approx(25.0)


def test_short_content_is_not_boosted():
    assert text_score("foo", compile_terms(["foo"])) == pytest.approx(1.0)


def test_non_positive_scores_are_dropped():
    results = [
        make_result("neg", -0.4, "nothing here"),
        make_result("zero", 0.0, "nothing here"),
        make_result("pos", 0.1, "nothing here"),
        make_result("lexical", -0.1, "needle " * 5),
    ]

    ranked = rank(results, "needle")

    assert all(r.score > 0 for r in ranked)
    assert [r.document.id for r in ranked] == ["lexical", "pos"]


def test_output_truncated_to_limit():
    results = [make_result(str(i), 0.1 * (i + 1)) for i in range(8)]

    ranked = rank(results, "", limit=3)

    assert len(ranked) == 3
    assert [r.document.id for r in ranked] == ["7", "6", "5"]


def test_ties_keep_input_order():
    results = [make_result(doc_id, 0.5, "same content") for doc_id in ("x", "y", "z")]

    ranked = rank(results, "content", limit=10)

    assert [r.document.id for r in ranked] == ["x", "y", "z"]


def test_inputs_are_not_mutated():
    original = make_result("a", 0.5, "needle")

    ranked = rank([original], "needle")

    assert original.score == 0.5
    assert ranked[0].score > 0.5
    assert ranked[0].document is original.document


def test_query_terms_are_regular_expressions():
    results = [make_result("a", 0.1, "def getvalue(): pass"), make_result("b", 0.2, "def other(): pass")]

    ranked = rank(results, "get.*")

    assert ranked[0].document.id == "a"


def test_invalid_pattern_matches_literally():
    patterns = compile_terms(["foo("])

    assert text_score("call foo( now", patterns) == pytest.approx(1.0)


def test_literal_terms_disable_regex():
    ranker = HybridResultRanker(literal_terms=True)
    results = [make_result("a", 0.1, "getvalue"), make_result("b", 0.1, "get.* literal")]

    ranked = ranker.rank(results, "get.*")

    assert ranked[0].document.id == "b"


def test_matching_is_case_insensitive():
    patterns = compile_terms(tokenize_query("Needle"))
    assert text_score("A NEEDLE in code", patterns) == pytest.approx(1.0)


def test_custom_weights():
    ranker = HybridResultRanker(vector_weight=1.0, text_weight=0.0)
    ranked = ranker.rank([make_result("a", 0.4, "needle")], "needle")
    assert ranked[0].score == pytest.approx(0.4)


def test_invalid_arguments():
    with pytest.raises(ValueError):
        HybridResultRanker(vector_weight=-1.0)
    with pytest.raises(ValueError):
        rank([make_result("a", 0.5)], "", limit=-1)


def test_single_match_in_hundred_chars_through_rank():
    content = "foo" + "x" * 97

    ranked = rank([make_result("a", 0.5, content)], "foo")

    assert ranked[0].score == pytest.approx(0.7 * 0.5 + 0.3)


def test_identical_results_at_full_vector_score_keep_input_order():
    results = [make_result(doc_id, 1.0, "shared body") for doc_id in ("first", "second", "third")]

    ranked = rank(results, "body", limit=3)

    assert [r.document.id for r in ranked] == ["first", "second", "third"]
    assert [r.score for r in ranked] == pytest.approx([1.0, 1.0, 1.0])


def test_oversized_repeat_count_matches_literally():
    results = [make_result("a", 0.5, "aaa"), make_result("b", 0.4, "a{99999999999} literal")]

    ranked = rank(results, "a{99999999999}")

    assert [r.document.id for r in ranked] == ["b", "a"]
    assert ranked[1].score == pytest.approx(0.35)
