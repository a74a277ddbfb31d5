"""
Label preprocessing for topic graphs.

Handles:
- Canonical (lowercased, trimmed) label forms
- Keyword tokenization
- Deduplication by canonical form
"""

from .deduplication import deduplicate
from .text_processor import normalize, tokenize

__all__ = [
    "deduplicate",
    "normalize",
    "tokenize",
]
