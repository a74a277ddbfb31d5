"""
Data access layer for topic graphs.

Provides repository classes for the graph, topic and edge records. All
repositories operate on a caller-owned session, so several of them can share
one transaction.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Edge, Graph, Topic

logger = logging.getLogger(__name__)


class GraphRepository:
    """Repository for graph records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, graph_data: Dict[str, Any]) -> Graph:
        """Create a new graph."""
        graph = Graph(**graph_data)
        self.session.add(graph)
        await self.session.flush()
        return graph

    async def get_by_id(self, graph_id: str, for_update: bool = False) -> Optional[Graph]:
        """
        Get graph by ID.

        Args:
            graph_id: Graph identifier
            for_update: Lock the row until the transaction ends (PostgreSQL)
        """
        query = select(Graph).where(Graph.id == graph_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def delete(self, graph_id: str) -> bool:
        """Delete a graph. Topics and edges go with it."""
        result = await self.session.execute(
            delete(Graph).where(Graph.id == graph_id)
        )
        return result.rowcount > 0

    async def count(self) -> int:
        """Count total graphs."""
        result = await self.session.execute(select(func.count(Graph.id)))
        return result.scalar() or 0


class TopicRepository:
    """Repository for topic records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_batch(self, topics_data: List[Dict[str, Any]]) -> List[Topic]:
        """Create multiple topics in batch."""
        topics = [Topic(**data) for data in topics_data]
        self.session.add_all(topics)
        await self.session.flush()
        return topics

    async def get_by_graph(self, graph_id: str) -> List[Topic]:
        """Get all topics of a graph in creation order."""
        result = await self.session.execute(
            select(Topic)
            .where(Topic.graph_id == graph_id)
            .order_by(Topic.created_at, Topic.id)
        )
        return list(result.scalars().all())

    async def get_in_graph(self, graph_id: str, topic_id: str) -> Optional[Topic]:
        """Get a topic by ID, only if it belongs to the given graph."""
        result = await self.session.execute(
            select(Topic).where(Topic.id == topic_id, Topic.graph_id == graph_id)
        )
        return result.scalar_one_or_none()

    async def count_by_graph(self, graph_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Topic.id)).where(Topic.graph_id == graph_id)
        )
        return result.scalar() or 0


class EdgeRepository:
    """Repository for edge records and neighborhood queries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_batch(self, edges_data: Sequence[Dict[str, Any]]) -> int:
        """Create multiple edges in batch. Returns count of created edges."""
        if not edges_data:
            return 0
        edges = [Edge(**data) for data in edges_data]
        self.session.add_all(edges)
        await self.session.flush()
        return len(edges)

    async def get_by_graph(self, graph_id: str) -> List[Edge]:
        """Get all edges of a graph, strongest first."""
        result = await self.session.execute(
            select(Edge)
            .where(Edge.graph_id == graph_id)
            .order_by(Edge.score.desc(), Edge.source_topic_id, Edge.target_topic_id)
        )
        return list(result.scalars().all())

    async def get_related(
        self,
        graph_id: str,
        topic_id: str,
        limit: int = 10,
    ) -> List[Tuple[str, str, float]]:
        """
        Get the topics sharing an edge with ``topic_id``.

        The topic may sit in either orientation slot of a stored edge; the
        other endpoint is returned.

        Returns:
            List of (topic_id, label, score) tuples, highest score first
        """
        other_id = case(
            (Edge.source_topic_id == topic_id, Edge.target_topic_id),
            else_=Edge.source_topic_id,
        )
        query = (
            select(Topic.id, Topic.label, Edge.score)
            .select_from(Edge)
            .join(Topic, Topic.id == other_id)
            .where(
                Edge.graph_id == graph_id,
                (Edge.source_topic_id == topic_id) | (Edge.target_topic_id == topic_id),
            )
            .order_by(Edge.score.desc(), Topic.label)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [(row[0], row[1], float(row[2])) for row in result.fetchall()]

    async def count_by_graph(self, graph_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Edge.id)).where(Edge.graph_id == graph_id)
        )
        return result.scalar() or 0
