"""
Similarity strategies for scoring pairs of topic labels.

A strategy consumes two token sets and returns a score inside its declared
range. Strategies are registered by name and looked up by the relationship
builder, so new scoring methods can be added without touching it.
"""

import logging
from abc import ABC, abstractmethod
from typing import AbstractSet, Dict, List, Tuple

from .errors import UnknownStrategy

logger = logging.getLogger(__name__)

KEYWORD_JACCARD = "keyword_jaccard"


class SimilarityStrategy(ABC):
    """Capability interface for pairwise label similarity."""

    name: str = ""
    score_range: Tuple[float, float] = (0.0, 1.0)

    @abstractmethod
    def score(self, tokens_a: AbstractSet[str], tokens_b: AbstractSet[str]) -> float:
        """Score two token sets. Must be symmetric and stay within score_range."""


class KeywordJaccardStrategy(SimilarityStrategy):
    """
    Jaccard coefficient over keyword token sets: |A ∩ B| / |A ∪ B|.

    Two empty sets score 0.0: labels without content are not related.
    """

    name = KEYWORD_JACCARD

    def score(self, tokens_a: AbstractSet[str], tokens_b: AbstractSet[str]) -> float:
        union = len(tokens_a | tokens_b)
        if union == 0:
            return 0.0
        return len(tokens_a & tokens_b) / union


_registry: Dict[str, SimilarityStrategy] = {}


def register_strategy(strategy: SimilarityStrategy, replace: bool = False) -> None:
    """
    Register a strategy under its name.

    Raises:
        ValueError: if the strategy has no name, or the name is taken and
            ``replace`` is False
    """
    if not strategy.name:
        raise ValueError(f"{type(strategy).__name__} must define a non-empty name")
    if strategy.name in _registry and not replace:
        raise ValueError(f"Strategy {strategy.name!r} is already registered")
    _registry[strategy.name] = strategy
    logger.debug("Registered relationship strategy %s", strategy.name)


def unregister_strategy(name: str) -> None:
    _registry.pop(name, None)


def get_strategy(name: str) -> SimilarityStrategy:
    """
    Look up a registered strategy.

    Raises:
        UnknownStrategy: if no strategy is registered under ``name``
    """
    try:
        return _registry[name]
    except KeyError:
        raise UnknownStrategy(name) from None


def available_strategies() -> List[str]:
    return sorted(_registry)


register_strategy(KeywordJaccardStrategy())
