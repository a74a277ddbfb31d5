"""
Pairwise relationship generation between topic labels.

Scores every unordered pair of normalized labels with a registered
similarity strategy and keeps the pairs at or above a threshold. Kept pairs
are emitted in label order (``label_a <= label_b``); identifier order is
applied later, at persistence time.
"""

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence

from ..preprocessing.text_processor import tokenize
from .strategies import get_strategy

logger = logging.getLogger(__name__)


class CanonicalLabelPair(NamedTuple):
    """An unordered pair of normalized labels stored in ascending label order."""

    label_a: str
    label_b: str

    @classmethod
    def of(cls, first: str, second: str) -> "CanonicalLabelPair":
        if first <= second:
            return cls(first, second)
        return cls(second, first)


@dataclass(frozen=True)
class EdgeCandidate:
    """A scored relationship between two labels, before topic identities exist."""

    pair: CanonicalLabelPair
    score: float

    @property
    def label_a(self) -> str:
        return self.pair.label_a

    @property
    def label_b(self) -> str:
        return self.pair.label_b

    def touches(self, labels) -> bool:
        """Whether either endpoint is in ``labels``."""
        return self.pair.label_a in labels or self.pair.label_b in labels


def generate_candidates(
    labels: Sequence[str],
    strategy_name: str,
    threshold: float,
) -> List[EdgeCandidate]:
    """
    Generate scored edge candidates for all pairs of labels.

    Args:
        labels: Normalized labels with pairwise-distinct values
        strategy_name: Name of a registered similarity strategy
        threshold: Minimum score (inclusive) for a pair to be kept

    Returns:
        Candidates in pair-iteration order, each in canonical label order

    Raises:
        UnknownStrategy: if ``strategy_name`` is not registered. Checked
            before any pair is scored.
    """
    strategy = get_strategy(strategy_name)

    n = len(labels)
    if n < 2:
        return []

    token_sets = [tokenize(label) for label in labels]
    candidates: List[EdgeCandidate] = []

    for i in range(n):
        tokens_i = token_sets[i]
        for j in range(i + 1, n):
            score = strategy.score(tokens_i, token_sets[j])
            if score >= threshold:
                candidates.append(
                    EdgeCandidate(CanonicalLabelPair.of(labels[i], labels[j]), score)
                )

    logger.debug(
        "Strategy %s kept %d of %d pairs at threshold %.4f",
        strategy_name,
        len(candidates),
        n * (n - 1) // 2,
        threshold,
    )
    return candidates
