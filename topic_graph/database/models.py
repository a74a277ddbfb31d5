"""
SQLAlchemy models for topic graph storage.

Edges are undirected but stored in a single orientation
(``source_topic_id < target_topic_id``), so one topic pair maps to at most
one row per graph.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from ..common.config import MAX_GRAPH_NAME_LENGTH, MAX_LABEL_LENGTH

STRATEGY_LENGTH = 50


def new_id() -> str:
    """Default identifier factory: a random UUID4 string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class Graph(Base):
    """
    A knowledge graph owning its topics and edges.

    Deleting a graph removes its topics and edges through ON DELETE CASCADE.
    """
    __tablename__ = "graphs"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(MAX_GRAPH_NAME_LENGTH), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    topics = relationship(
        "Topic",
        back_populates="graph",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    edges = relationship(
        "Edge",
        back_populates="graph",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Graph(id={self.id}, name={self.name!r})>"


class Topic(Base):
    """A node of a graph: the original label plus its canonical form."""
    __tablename__ = "topics"

    id = Column(String(36), primary_key=True, default=new_id)
    graph_id = Column(
        String(36),
        ForeignKey("graphs.id", ondelete="CASCADE"),
        nullable=False,
    )
    label = Column(String(MAX_LABEL_LENGTH), nullable=False)
    normalized_label = Column(String(MAX_LABEL_LENGTH), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    graph = relationship("Graph", back_populates="topics")

    __table_args__ = (
        UniqueConstraint("graph_id", "normalized_label", name="uq_topics_graph_normalized_label"),
        Index("idx_topics_graph_id", "graph_id"),
    )

    def __repr__(self):
        return f"<Topic(id={self.id}, label={self.label!r})>"


class Edge(Base):
    """A scored, undirected relationship between two topics of one graph."""
    __tablename__ = "edges"

    id = Column(String(36), primary_key=True, default=new_id)
    graph_id = Column(
        String(36),
        ForeignKey("graphs.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_topic_id = Column(
        String(36),
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
    )
    target_topic_id = Column(
        String(36),
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
    )
    score = Column(Float, nullable=False)
    strategy = Column(String(STRATEGY_LENGTH), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    graph = relationship("Graph", back_populates="edges")

    __table_args__ = (
        UniqueConstraint(
            "graph_id", "source_topic_id", "target_topic_id",
            name="uq_edges_graph_source_target",
        ),
        CheckConstraint("source_topic_id < target_topic_id", name="ck_edges_source_lt_target"),
        CheckConstraint("score >= 0 AND score <= 1", name="ck_edges_score_range"),
        Index("idx_edges_graph_source", "graph_id", "source_topic_id"),
        Index("idx_edges_graph_target", "graph_id", "target_topic_id"),
    )

    def __repr__(self):
        return (
            f"<Edge(id={self.id}, {self.source_topic_id} - {self.target_topic_id}, "
            f"score={self.score})>"
        )
