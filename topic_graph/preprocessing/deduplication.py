"""
Deduplication of raw topic labels by canonical form.
"""

import logging
from typing import Iterable, List

from .text_processor import normalize

logger = logging.getLogger(__name__)


def deduplicate(labels: Iterable[str]) -> List[str]:
    """
    Collapse labels that share a canonical form.

    The first occurrence wins and keeps its original spelling; output order
    follows first occurrence in the input.

    Args:
        labels: Raw labels, possibly with case/whitespace variants

    Returns:
        Labels with pairwise-distinct normalized forms
    """
    seen = set()
    unique: List[str] = []
    total = 0
    for label in labels:
        total += 1
        normalized = normalize(label)
        if normalized in seen:
            continue
        seen.add(normalized)
        unique.append(label)

    if total != len(unique):
        logger.debug("Collapsed %d labels into %d unique topics", total, len(unique))
    return unique
