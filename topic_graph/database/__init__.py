"""
Database module for topic graphs.

Provides SQLAlchemy async integration for:
- Graph, topic and edge storage
- Transactional sessions
- Neighborhood queries over undirected edges
"""

from .models import Base, Edge, Graph, Topic, new_id
from .connection import DatabaseManager
from .repository import EdgeRepository, GraphRepository, TopicRepository

__all__ = [
    "Base",
    "Edge",
    "Graph",
    "Topic",
    "new_id",
    "DatabaseManager",
    "EdgeRepository",
    "GraphRepository",
    "TopicRepository",
]
