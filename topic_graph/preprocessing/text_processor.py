"""
Topic label canonicalization and tokenization.
"""

import re
import logging
from typing import FrozenSet

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(raw: str) -> str:
    """
    Canonical form of a topic label, used for equality and deduplication.

    Args:
        raw: Raw label

    Returns:
        Lowercased label with surrounding whitespace removed
    """
    return raw.lower().strip()


def tokenize(raw: str) -> FrozenSet[str]:
    """
    Split a label into its set of keyword tokens.

    Punctuation is removed before splitting, so "Digital-PR" yields
    {"digitalpr"} while "Digital PR" yields {"digital", "pr"}.

    Args:
        raw: Raw or normalized label

    Returns:
        Set of non-empty tokens (empty for blank or punctuation-only input)
    """
    text = _PUNCTUATION_RE.sub("", raw.lower()).strip()
    return frozenset(token for token in _WHITESPACE_RE.split(text) if token)
