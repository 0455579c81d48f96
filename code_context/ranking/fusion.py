"""Result fusion for hybrid search on stores without native lexical search.

S3Vectors only answers nearest-neighbour queries, so hybrid search there is
simulated: the vector hits are rescored with a length-normalised term
density computed from the query string, then re-sorted.

Scoring per result
- ``text_score = matches / max(len(content) / 100, 1)``
- ``combined = 0.7 * vector_score + 0.3 * text_score``

Query terms are matched as regular expressions against the lowercased
content, so a term such as ``get.*`` matches more than its literal text.
Terms that do not compile are matched literally. ``literal_terms=True``
escapes every term.
"""

import re
from dataclasses import replace
from typing import List, Optional, Pattern, Sequence

import structlog

from code_context.vector_store.base import VectorSearchResult

logger = structlog.get_logger("ranking.fusion")

VECTOR_WEIGHT = 0.7
TEXT_WEIGHT = 0.3
TEXT_DENSITY_CHARS = 100


def tokenize_query(query: str) -> List[str]:
    """Lowercase whitespace tokenization; empty terms are dropped."""
    return query.lower().split()


def compile_terms(terms: Sequence[str], literal: bool = False) -> List[Pattern[str]]:
    """Compile query terms, falling back to a literal match for invalid patterns."""
    patterns = []
    for term in terms:
        if literal:
            patterns.append(re.compile(re.escape(term)))
            continue
        try:
            patterns.append(re.compile(term))
        except (re.error, OverflowError, RecursionError):
            patterns.append(re.compile(re.escape(term)))
    return patterns


def count_matches(content: str, patterns: Sequence[Pattern[str]]) -> int:
    """Total non-overlapping matches of all patterns in ``content``."""
    return sum(len(pattern.findall(content)) for pattern in patterns)


def text_score(content: str, patterns: Sequence[Pattern[str]]) -> float:
    """Length-normalised term density of ``content``."""
    lowered = content.lower()
    matches = count_matches(lowered, patterns)
    return matches / max(len(lowered) / TEXT_DENSITY_CHARS, 1)


class HybridResultRanker:
    """Rescores vector hits with a lexical signal and re-sorts them.

    Inputs are never modified: each kept result is a new record carrying
    the combined score. Sorting is stable, so results with equal combined
    scores keep their input order.
    """

    def __init__(
        self,
        vector_weight: float = VECTOR_WEIGHT,
        text_weight: float = TEXT_WEIGHT,
        literal_terms: bool = False
    ):
        if vector_weight < 0 or text_weight < 0:
            raise ValueError("fusion weights cannot be negative")
        self.vector_weight = vector_weight
        self.text_weight = text_weight
        self.literal_terms = literal_terms

    def combined_score(self, result: VectorSearchResult, patterns: Sequence[Pattern[str]]) -> float:
        lexical = text_score(result.document.content, patterns) if patterns else 0.0
        return self.vector_weight * result.score + self.text_weight * lexical

    def rank(
        self,
        results: Sequence[VectorSearchResult],
        query: str,
        limit: Optional[int] = None
    ) -> List[VectorSearchResult]:
        """Return results ordered by combined score, dropping non-positive ones.

        Parameters
        - results: Vector search hits, typically over-fetched
        - query: Raw lexical query string
        - limit: Maximum number of results to return (all when ``None``)
        """
        if limit is not None and limit < 0:
            raise ValueError("limit cannot be negative")

        patterns = compile_terms(tokenize_query(query), literal=self.literal_terms)

        rescored = []
        for result in results:
            score = self.combined_score(result, patterns)
            if score > 0:
                rescored.append(replace(result, score=score))

        rescored.sort(key=lambda r: r.score, reverse=True)
        ranked = rescored if limit is None else rescored[:limit]

        logger.debug(
            "Hybrid rescoring completed",
            input_count=len(results),
            kept_count=len(rescored),
            returned_count=len(ranked),
            term_count=len(patterns),
        )

        return ranked


_default_ranker = HybridResultRanker()


def rank(
    results: Sequence[VectorSearchResult],
    query: str,
    limit: Optional[int] = None
) -> List[VectorSearchResult]:
    """Rank with the default 0.7 / 0.3 weighting."""
    return _default_ranker.rank(results, query, limit)
