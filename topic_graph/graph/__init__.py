"""
Topic graph construction and querying.

This module provides relationship generation between topic labels through
named similarity strategies, and the service that persists and queries
the resulting graphs.
"""

from .errors import (
    CandidateResolutionError,
    GraphNotFound,
    InvalidInput,
    TopicGraphError,
    TopicNotFound,
    UnknownStrategy,
)
from .graph_service import (
    CanonicalIdentifierPair,
    GraphCreationResult,
    GraphDetail,
    GraphService,
    RelatedTopic,
    RelatedTopicsResult,
)
from .relationship_builder import CanonicalLabelPair, EdgeCandidate, generate_candidates
from .schemas import AddTopicsRequest, CreateGraphRequest
from .strategies import (
    KeywordJaccardStrategy,
    SimilarityStrategy,
    available_strategies,
    get_strategy,
    register_strategy,
)

__all__ = [
    "AddTopicsRequest",
    "CandidateResolutionError",
    "CanonicalIdentifierPair",
    "CanonicalLabelPair",
    "CreateGraphRequest",
    "EdgeCandidate",
    "GraphCreationResult",
    "GraphDetail",
    "GraphNotFound",
    "GraphService",
    "InvalidInput",
    "KeywordJaccardStrategy",
    "RelatedTopic",
    "RelatedTopicsResult",
    "SimilarityStrategy",
    "TopicGraphError",
    "TopicNotFound",
    "UnknownStrategy",
    "available_strategies",
    "generate_candidates",
    "get_strategy",
    "register_strategy",
]
