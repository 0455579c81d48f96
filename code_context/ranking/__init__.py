"""Search ranking and result fusion components.

Contents
- ``fusion``: vector + lexical score fusion used for simulated hybrid search
"""

from .fusion import HybridResultRanker, rank

__all__ = ["HybridResultRanker", "rank"]
