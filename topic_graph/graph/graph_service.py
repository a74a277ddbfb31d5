"""
Graph service for building and querying topic graphs.

Turns raw topic labels into persisted graphs: deduplicates labels, generates
scored relationships between them, maps the relationships onto topic
identities and writes everything in one transaction. Also answers
neighborhood and detail queries over stored graphs.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import networkx as nx

from ..common.config import DEFAULT_RELATED_LIMIT, Settings
from ..database.connection import DatabaseManager
from ..database.models import new_id
from ..database.repository import EdgeRepository, GraphRepository, TopicRepository
from ..preprocessing import deduplicate, normalize
from .errors import CandidateResolutionError, GraphNotFound, InvalidInput, TopicNotFound
from .relationship_builder import EdgeCandidate, generate_candidates
from .schemas import AddTopicsRequest, CreateGraphRequest
from .strategies import get_strategy

logger = logging.getLogger(__name__)

# Matches the decimal(5,4) precision edge scores are reported with
SCORE_PRECISION = 4


class CanonicalIdentifierPair(NamedTuple):
    """Two topic identifiers in ascending order, the stored edge orientation."""

    source_topic_id: str
    target_topic_id: str

    @classmethod
    def of(cls, first: str, second: str) -> "CanonicalIdentifierPair":
        if first < second:
            return cls(first, second)
        return cls(second, first)


@dataclass(frozen=True)
class GraphCreationResult:
    graph_id: str
    topics_created: int
    edges_created: int
    strategy: str
    threshold: float


@dataclass(frozen=True)
class NodeView:
    id: str
    label: str


@dataclass(frozen=True)
class EdgeView:
    id: str
    source: str
    target: str
    score: float
    strategy: str


@dataclass(frozen=True)
class RelatedTopic:
    topic_id: str
    label: str
    score: float


@dataclass(frozen=True)
class RelatedTopicsResult:
    topic: NodeView
    related: List[RelatedTopic] = field(default_factory=list)


@dataclass(frozen=True)
class GraphDetail:
    graph_id: str
    name: Optional[str]
    nodes: List[NodeView] = field(default_factory=list)
    edges: List[EdgeView] = field(default_factory=list)

    def to_networkx(self) -> nx.Graph:
        """
        Undirected NetworkX view of the graph.

        Nodes are topic ids with a ``label`` attribute; edges carry ``id``,
        ``score`` and ``strategy``.
        """
        graph = nx.Graph(graph_id=self.graph_id, name=self.name)
        for node in self.nodes:
            graph.add_node(node.id, label=node.label)
        for edge in self.edges:
            graph.add_edge(
                edge.source,
                edge.target,
                id=edge.id,
                score=edge.score,
                strategy=edge.strategy,
            )
        return graph


class _GraphLock:
    """An asyncio.Lock plus the number of callers holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class GraphService:
    """Service for creating, extending and querying topic graphs."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        settings: Optional[Settings] = None,
        id_factory: Callable[[], str] = new_id,
    ):
        """
        Initialize graph service.

        Args:
            db_manager: Provides transactional sessions
            settings: Limits for graph size and related-topic queries
            id_factory: Produces unique identifiers for graphs, topics and edges
        """
        self.db = db_manager
        self.settings = settings or Settings()
        self._id_factory = id_factory
        self._graph_locks: Dict[str, _GraphLock] = {}

    async def create_graph(
        self,
        name: Optional[str],
        labels: Sequence[str],
        strategy: str,
        threshold: float,
    ) -> GraphCreationResult:
        """
        Create a graph with one topic per unique label and scored edges between them.

        Args:
            name: Optional graph name
            labels: Raw topic labels; case/whitespace duplicates are absorbed
            strategy: Registered similarity strategy name
            threshold: Minimum exact score (inclusive) for an edge; stored
                scores are rounded to SCORE_PRECISION places afterwards

        Returns:
            GraphCreationResult with the new graph id and counts

        Raises:
            UnknownStrategy: before anything is computed or written
            InvalidInput: if the unique labels exceed the per-graph topic limit
        """
        get_strategy(strategy)
        unique_labels = deduplicate(labels)
        self._check_topic_limit(len(unique_labels))

        graph_id = self._id_factory()
        topics_data = self._topic_records(graph_id, unique_labels)
        label_to_id = {t["normalized_label"]: t["id"] for t in topics_data}

        candidates = generate_candidates(
            [t["normalized_label"] for t in topics_data],
            strategy,
            threshold,
        )
        edges_data = self._edge_records(graph_id, candidates, label_to_id, strategy)

        async with self.db.session() as session:
            await GraphRepository(session).create({"id": graph_id, "name": name})
            await TopicRepository(session).create_batch(topics_data)
            edges_created = await EdgeRepository(session).create_batch(edges_data)

        logger.info(
            "Created graph %s with %d topics and %d edges (strategy=%s, threshold=%.4f)",
            graph_id,
            len(topics_data),
            edges_created,
            strategy,
            threshold,
        )
        return GraphCreationResult(
            graph_id=graph_id,
            topics_created=len(topics_data),
            edges_created=edges_created,
            strategy=strategy,
            threshold=threshold,
        )

    async def add_topics(
        self,
        graph_id: str,
        labels: Sequence[str],
        strategy: str,
        threshold: float,
    ) -> GraphCreationResult:
        """
        Add topics to an existing graph and relate them to every topic in it.

        Labels already present in the graph are skipped silently. Edges
        between pre-existing topics are never re-scored or rewritten.

        Raises:
            UnknownStrategy: before the graph is loaded
            GraphNotFound: if ``graph_id`` does not exist
            InvalidInput: if the graph would exceed the per-graph topic limit
        """
        get_strategy(strategy)

        async with self._locked(graph_id):
            async with self.db.session() as session:
                graphs = GraphRepository(session)
                topics = TopicRepository(session)

                if await graphs.get_by_id(graph_id, for_update=True) is None:
                    logger.warning("Cannot add topics: graph %s not found", graph_id)
                    raise GraphNotFound(graph_id)

                existing = await topics.get_by_graph(graph_id)
                existing_normalized = {t.normalized_label for t in existing}
                new_labels = [
                    label for label in deduplicate(labels)
                    if normalize(label) not in existing_normalized
                ]

                if not new_labels:
                    logger.info("No new topics for graph %s; nothing to add", graph_id)
                    return GraphCreationResult(
                        graph_id=graph_id,
                        topics_created=0,
                        edges_created=0,
                        strategy=strategy,
                        threshold=threshold,
                    )

                self._check_topic_limit(len(existing) + len(new_labels))

                new_data = self._topic_records(graph_id, new_labels)
                await topics.create_batch(new_data)

                label_to_id = {t.normalized_label: t.id for t in existing}
                label_to_id.update((t["normalized_label"], t["id"]) for t in new_data)
                new_normalized = {t["normalized_label"] for t in new_data}

                candidates = generate_candidates(
                    [t.normalized_label for t in existing] + [t["normalized_label"] for t in new_data],
                    strategy,
                    threshold,
                )
                touching_new = [c for c in candidates if c.touches(new_normalized)]
                edges_data = self._edge_records(graph_id, touching_new, label_to_id, strategy)
                edges_created = await EdgeRepository(session).create_batch(edges_data)

        logger.info(
            "Added %d topics and %d edges to graph %s (strategy=%s, threshold=%.4f)",
            len(new_data),
            edges_created,
            graph_id,
            strategy,
            threshold,
        )
        return GraphCreationResult(
            graph_id=graph_id,
            topics_created=len(new_data),
            edges_created=edges_created,
            strategy=strategy,
            threshold=threshold,
        )

    async def create_graph_from_request(self, request: CreateGraphRequest) -> GraphCreationResult:
        """Create a graph from a validated request with defaults already resolved."""
        return await self.create_graph(
            request.name, request.topics, request.strategy, request.threshold
        )

    async def add_topics_from_request(
        self, graph_id: str, request: AddTopicsRequest
    ) -> GraphCreationResult:
        """Add topics from a validated request with defaults already resolved."""
        return await self.add_topics(
            graph_id, request.topics, request.strategy, request.threshold
        )

    async def related_topics(
        self,
        graph_id: str,
        topic_id: str,
        limit: int = DEFAULT_RELATED_LIMIT,
    ) -> RelatedTopicsResult:
        """
        Get the topics directly related to a topic, strongest first.

        Args:
            graph_id: Graph identifier
            topic_id: Topic identifier within the graph
            limit: Maximum results; values above the configured maximum are clamped

        Raises:
            InvalidInput: if ``limit`` is below 1
            TopicNotFound: if the topic does not exist in the graph
        """
        if limit < 1:
            raise InvalidInput(f"limit must be at least 1, got {limit}")
        limit = min(limit, self.settings.max_related_limit)

        async with self.db.session() as session:
            topic = await TopicRepository(session).get_in_graph(graph_id, topic_id)
            if topic is None:
                logger.warning("Topic %s not found in graph %s", topic_id, graph_id)
                raise TopicNotFound(topic_id)
            rows = await EdgeRepository(session).get_related(graph_id, topic_id, limit=limit)

        return RelatedTopicsResult(
            topic=NodeView(id=topic.id, label=topic.label),
            related=[RelatedTopic(topic_id=r[0], label=r[1], score=r[2]) for r in rows],
        )

    async def get_graph(self, graph_id: str) -> GraphDetail:
        """
        Get a graph with all of its topics and edges.

        Raises:
            GraphNotFound: if ``graph_id`` does not exist
        """
        async with self.db.session() as session:
            graph = await GraphRepository(session).get_by_id(graph_id)
            if graph is None:
                logger.warning("Graph %s not found", graph_id)
                raise GraphNotFound(graph_id)
            topics = await TopicRepository(session).get_by_graph(graph_id)
            edges = await EdgeRepository(session).get_by_graph(graph_id)

        return GraphDetail(
            graph_id=graph.id,
            name=graph.name,
            nodes=[NodeView(id=t.id, label=t.label) for t in topics],
            edges=[
                EdgeView(
                    id=e.id,
                    source=e.source_topic_id,
                    target=e.target_topic_id,
                    score=e.score,
                    strategy=e.strategy,
                )
                for e in edges
            ],
        )

    async def delete_graph(self, graph_id: str) -> bool:
        """Delete a graph with its topics and edges. Returns False if it did not exist."""
        async with self._locked(graph_id):
            async with self.db.session() as session:
                deleted = await GraphRepository(session).delete(graph_id)
        if deleted:
            logger.info("Deleted graph %s", graph_id)
        return deleted

    @asynccontextmanager
    async def _locked(self, graph_id: str):
        """
        Serialize writers of one graph within this process.

        The entry for ``graph_id`` lives only while some caller holds or
        waits on it, so lookups of unknown ids leave nothing behind.
        """
        entry = self._graph_locks.get(graph_id)
        if entry is None:
            entry = self._graph_locks[graph_id] = _GraphLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._graph_locks[graph_id]

    def _check_topic_limit(self, topic_count: int) -> None:
        if topic_count > self.settings.max_topics_per_graph:
            raise InvalidInput(
                f"A graph may hold at most {self.settings.max_topics_per_graph} topics, "
                f"got {topic_count}"
            )

    def _topic_records(self, graph_id: str, labels: Iterable[str]) -> List[Dict[str, str]]:
        return [
            {
                "id": self._id_factory(),
                "graph_id": graph_id,
                "label": label,
                "normalized_label": normalize(label),
            }
            for label in labels
        ]

    def _edge_records(
        self,
        graph_id: str,
        candidates: Iterable[EdgeCandidate],
        label_to_id: Mapping[str, str],
        strategy: str,
    ) -> List[Dict]:
        """
        Map label-ordered candidates onto topic ids in identifier order.

        Scores are stored rounded to SCORE_PRECISION places after the
        threshold test ran on the exact value, so a stored score may sit
        just under the threshold (1/3 passes 0.33333 and is stored as 0.3333).
        """
        records = []
        for candidate in candidates:
            pair = CanonicalIdentifierPair.of(
                _resolve(label_to_id, candidate.label_a),
                _resolve(label_to_id, candidate.label_b),
            )
            records.append(
                {
                    "id": self._id_factory(),
                    "graph_id": graph_id,
                    "source_topic_id": pair.source_topic_id,
                    "target_topic_id": pair.target_topic_id,
                    "score": round(candidate.score, SCORE_PRECISION),
                    "strategy": strategy,
                }
            )
        return records


def _resolve(label_to_id: Mapping[str, str], label: str) -> str:
    try:
        return label_to_id[label]
    except KeyError:
        raise CandidateResolutionError(label) from None
