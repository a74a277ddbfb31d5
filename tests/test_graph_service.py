"""
Tests for graph assembly and queries (topic_graph/graph/graph_service.py).
"""

import asyncio

import networkx as nx
import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError

from topic_graph.common.config import Settings
from topic_graph.database.repository import EdgeRepository, GraphRepository, TopicRepository
from topic_graph.graph.errors import (
    CandidateResolutionError,
    GraphNotFound,
    InvalidInput,
    TopicNotFound,
    UnknownStrategy,
)
from topic_graph.graph.graph_service import (
    CanonicalIdentifierPair,
    GraphService,
    _resolve,
)
from topic_graph.graph.schemas import AddTopicsRequest, CreateGraphRequest


def _labels_by_id(detail):
    return {node.id: node.label for node in detail.nodes}


def _edge_label_pairs(detail):
    labels = _labels_by_id(detail)
    return {
        frozenset((labels[e.source], labels[e.target])): e.score
        for e in detail.edges
    }


def test_canonical_identifier_pair_orders_ids():
    assert CanonicalIdentifierPair.of("b", "a") == ("a", "b")
    assert CanonicalIdentifierPair.of("a", "b").source_topic_id == "a"


def test_unresolvable_label_is_an_invariant_violation():
    with pytest.raises(CandidateResolutionError):
        _resolve({"ai": "1"}, "seo")
    # Surfaces as an assertion failure, not a caller-facing error
    assert issubclass(CandidateResolutionError, AssertionError)


@pytest.mark.asyncio
async def test_create_graph_without_related_labels(graph_service):
    result = await graph_service.create_graph(
        None, ["AI", "Artificial Intelligence"], "keyword_jaccard", 0.1
    )

    assert result.topics_created == 2
    assert result.edges_created == 0
    assert result.strategy == "keyword_jaccard"
    assert result.threshold == 0.1

    detail = await graph_service.get_graph(result.graph_id)
    assert sorted(n.label for n in detail.nodes) == ["AI", "Artificial Intelligence"]
    assert detail.edges == []


@pytest.mark.asyncio
async def test_create_graph_with_shared_keyword(graph_service):
    result = await graph_service.create_graph(
        "PR", ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )

    assert result.topics_created == 2
    assert result.edges_created == 1

    detail = await graph_service.get_graph(result.graph_id)
    assert detail.name == "PR"
    (edge,) = detail.edges
    assert edge.score == pytest.approx(0.3333, abs=1e-4)
    assert edge.strategy == "keyword_jaccard"
    assert edge.source < edge.target


@pytest.mark.asyncio
async def test_create_graph_deduplicates_labels(graph_service):
    result = await graph_service.create_graph(
        None, ["AI", "ai", " AI ", "SEO"], "keyword_jaccard", 0.1
    )
    assert result.topics_created == 2

    detail = await graph_service.get_graph(result.graph_id)
    assert sorted(n.label for n in detail.nodes) == ["AI", "SEO"]


@pytest.mark.asyncio
async def test_edges_are_reoriented_by_identifier(descending_graph_service):
    # Ids decrease with each allocation, so "PR Strategy" (created second)
    # gets the smaller id even though "digital pr" sorts first by label.
    result = await descending_graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )
    detail = await descending_graph_service.get_graph(result.graph_id)
    ids = {node.label: node.id for node in detail.nodes}

    (edge,) = detail.edges
    assert ids["PR Strategy"] < ids["Digital PR"]
    assert edge.source == ids["PR Strategy"]
    assert edge.target == ids["Digital PR"]


@pytest.mark.asyncio
async def test_create_graph_unknown_strategy_writes_nothing(graph_service, db_manager):
    with pytest.raises(UnknownStrategy):
        await graph_service.create_graph(None, ["a b", "b c"], "nope", 0.1)

    async with db_manager.session() as session:
        assert await GraphRepository(session).count() == 0


@pytest.mark.asyncio
async def test_create_graph_respects_topic_limit(db_manager):
    service = GraphService(db_manager, settings=Settings(max_topics_per_graph=2))
    with pytest.raises(InvalidInput):
        await service.create_graph(None, ["a", "b", "c"], "keyword_jaccard", 0.1)
    # Duplicates do not count against the limit
    result = await service.create_graph(None, ["a", "A", "b"], "keyword_jaccard", 0.1)
    assert result.topics_created == 2


@pytest.mark.asyncio
async def test_create_graph_is_atomic(db_manager):
    ids = iter(["graph-1", "topic-1", "topic-1"])
    service = GraphService(db_manager, id_factory=lambda: next(ids))

    with pytest.raises((IntegrityError, FlushError)):
        await service.create_graph(None, ["AI", "SEO"], "keyword_jaccard", 0.1)

    async with db_manager.session() as session:
        assert await GraphRepository(session).count() == 0
        assert await TopicRepository(session).count_by_graph("graph-1") == 0


@pytest.mark.asyncio
async def test_add_topics_relates_new_topics_to_all(graph_service):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )

    result = await graph_service.add_topics(
        created.graph_id,
        ["Media Outreach", "PR Outreach", "digital pr"],
        "keyword_jaccard",
        0.1,
    )

    assert result.graph_id == created.graph_id
    assert result.topics_created == 2
    assert result.edges_created == 3

    detail = await graph_service.get_graph(created.graph_id)
    pairs = _edge_label_pairs(detail)
    assert set(pairs) == {
        frozenset(("Digital PR", "PR Strategy")),
        frozenset(("Digital PR", "PR Outreach")),
        frozenset(("PR Strategy", "PR Outreach")),
        frozenset(("Media Outreach", "PR Outreach")),
    }
    for edge in detail.edges:
        assert edge.source < edge.target


@pytest.mark.asyncio
async def test_add_topics_leaves_existing_edges_untouched(graph_service):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )
    before = await graph_service.get_graph(created.graph_id)

    # A lower threshold would add edges between existing topics if they were re-scored
    await graph_service.add_topics(created.graph_id, ["Backlinks"], "keyword_jaccard", 0.0)

    after = await graph_service.get_graph(created.graph_id)
    old_edge = before.edges[0]
    assert old_edge in after.edges
    backlinks_id = next(n.id for n in after.nodes if n.label == "Backlinks")
    for edge in after.edges:
        if edge != old_edge:
            assert backlinks_id in (edge.source, edge.target)


@pytest.mark.asyncio
@pytest.mark.parametrize("labels", [[], ["DIGITAL PR", " pr strategy ", "Digital PR"]])
async def test_add_topics_without_new_labels_changes_nothing(graph_service, labels):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )
    before = await graph_service.get_graph(created.graph_id)

    result = await graph_service.add_topics(created.graph_id, labels, "keyword_jaccard", 0.1)

    assert result.topics_created == 0
    assert result.edges_created == 0
    after = await graph_service.get_graph(created.graph_id)
    assert after.edges == before.edges
    assert after.nodes == before.nodes


@pytest.mark.asyncio
async def test_add_topics_to_missing_graph(graph_service):
    with pytest.raises(GraphNotFound) as exc_info:
        await graph_service.add_topics("missing", ["AI"], "keyword_jaccard", 0.1)
    assert exc_info.value.graph_id == "missing"


@pytest.mark.asyncio
async def test_add_topics_checks_strategy_before_graph(graph_service):
    with pytest.raises(UnknownStrategy):
        await graph_service.add_topics("missing", ["AI"], "nope", 0.1)


@pytest.mark.asyncio
async def test_add_topics_respects_topic_limit(db_manager):
    service = GraphService(db_manager, settings=Settings(max_topics_per_graph=3))
    created = await service.create_graph(None, ["a", "b"], "keyword_jaccard", 0.1)

    with pytest.raises(InvalidInput):
        await service.add_topics(created.graph_id, ["c", "d"], "keyword_jaccard", 0.1)

    detail = await service.get_graph(created.graph_id)
    assert len(detail.nodes) == 2


@pytest.mark.asyncio
async def test_concurrent_add_topics_relate_to_each_other(graph_service):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )

    # Whichever call runs second must see the other's topic and relate to it
    first, second = await asyncio.gather(
        graph_service.add_topics(created.graph_id, ["PR Outreach"], "keyword_jaccard", 0.1),
        graph_service.add_topics(created.graph_id, ["Media Outreach"], "keyword_jaccard", 0.1),
    )

    assert first.topics_created == 1
    assert second.topics_created == 1
    assert first.edges_created + second.edges_created == 3

    detail = await graph_service.get_graph(created.graph_id)
    assert set(_edge_label_pairs(detail)) == {
        frozenset(("Digital PR", "PR Strategy")),
        frozenset(("Digital PR", "PR Outreach")),
        frozenset(("PR Strategy", "PR Outreach")),
        frozenset(("Media Outreach", "PR Outreach")),
    }


@pytest.mark.asyncio
async def test_graph_locks_are_released_for_missing_graphs(graph_service):
    for i in range(200):
        with pytest.raises(GraphNotFound):
            await graph_service.add_topics(f"missing-{i}", ["AI"], "keyword_jaccard", 0.1)

    assert graph_service._graph_locks == {}


@pytest.mark.asyncio
async def test_graph_locks_are_released_after_writes(graph_service):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )

    await asyncio.gather(
        *(
            graph_service.add_topics(created.graph_id, [f"Topic {i}"], "keyword_jaccard", 0.1)
            for i in range(5)
        )
    )
    assert graph_service._graph_locks == {}

    await graph_service.delete_graph(created.graph_id)
    await graph_service.delete_graph("missing")
    assert graph_service._graph_locks == {}


@pytest.mark.asyncio
async def test_stored_score_is_rounded_after_threshold_check(graph_service):
    # 1/3 passes a 0.33333 threshold and is then stored as 0.3333
    result = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.33333
    )
    assert result.edges_created == 1

    (edge,) = (await graph_service.get_graph(result.graph_id)).edges
    assert edge.score == pytest.approx(0.3333, abs=1e-9)
    assert edge.score < result.threshold


@pytest.mark.asyncio
async def test_requests_flow_through_service(graph_service, settings):
    create = CreateGraphRequest.parse(
        {"name": "Requests", "topics": ["Digital PR", "PR Strategy"]}, settings
    )
    created = await graph_service.create_graph_from_request(create)
    assert created.edges_created == 1
    assert created.strategy == settings.default_strategy

    add = AddTopicsRequest.parse({"topics": ["PR Outreach"], "threshold": 0.5}, settings)
    added = await graph_service.add_topics_from_request(created.graph_id, add)
    assert added.topics_created == 1
    assert added.edges_created == 0
    assert added.threshold == 0.5


async def _seed_star_graph(db_manager):
    """
    Graph with a hub topic "t2" joined to three others with scores 0.9, 0.5, 0.7.

    The hub sits in the target slot of one edge and the source slot of the others.
    """
    async with db_manager.session() as session:
        await GraphRepository(session).create({"id": "g", "name": "star"})
        await TopicRepository(session).create_batch(
            [
                {"id": "t1", "graph_id": "g", "label": "Alpha", "normalized_label": "alpha"},
                {"id": "t2", "graph_id": "g", "label": "Hub", "normalized_label": "hub"},
                {"id": "t3", "graph_id": "g", "label": "Gamma", "normalized_label": "gamma"},
                {"id": "t4", "graph_id": "g", "label": "Delta", "normalized_label": "delta"},
                {"id": "t5", "graph_id": "g", "label": "Loner", "normalized_label": "loner"},
            ]
        )
        await EdgeRepository(session).create_batch(
            [
                {"id": "e1", "graph_id": "g", "source_topic_id": "t1", "target_topic_id": "t2",
                 "score": 0.9, "strategy": "keyword_jaccard"},
                {"id": "e2", "graph_id": "g", "source_topic_id": "t2", "target_topic_id": "t3",
                 "score": 0.5, "strategy": "keyword_jaccard"},
                {"id": "e3", "graph_id": "g", "source_topic_id": "t2", "target_topic_id": "t4",
                 "score": 0.7, "strategy": "keyword_jaccard"},
                {"id": "e4", "graph_id": "g", "source_topic_id": "t3", "target_topic_id": "t4",
                 "score": 1.0, "strategy": "keyword_jaccard"},
            ]
        )


@pytest.mark.asyncio
async def test_related_topics_ordered_by_score(graph_service, db_manager):
    await _seed_star_graph(db_manager)

    result = await graph_service.related_topics("g", "t2", limit=2)

    assert result.topic.id == "t2"
    assert result.topic.label == "Hub"
    assert [(r.topic_id, r.label, r.score) for r in result.related] == [
        ("t1", "Alpha", 0.9),
        ("t4", "Delta", 0.7),
    ]


@pytest.mark.asyncio
async def test_related_topics_covers_both_orientations(graph_service, db_manager):
    await _seed_star_graph(db_manager)

    result = await graph_service.related_topics("g", "t2")
    assert [r.topic_id for r in result.related] == ["t1", "t4", "t3"]

    isolated = await graph_service.related_topics("g", "t5")
    assert isolated.related == []


@pytest.mark.asyncio
async def test_related_topics_limit_is_clamped(db_manager):
    await _seed_star_graph(db_manager)
    service = GraphService(db_manager, settings=Settings(max_related_limit=1))

    result = await service.related_topics("g", "t2", limit=50)
    assert len(result.related) == 1

    with pytest.raises(InvalidInput):
        await service.related_topics("g", "t2", limit=0)


@pytest.mark.asyncio
async def test_related_topics_unknown_topic(graph_service, db_manager):
    await _seed_star_graph(db_manager)

    with pytest.raises(TopicNotFound) as exc_info:
        await graph_service.related_topics("g", "nope")
    assert exc_info.value.topic_id == "nope"

    # A topic from another graph is not found either
    with pytest.raises(TopicNotFound):
        await graph_service.related_topics("other", "t1")


@pytest.mark.asyncio
async def test_get_missing_graph(graph_service):
    with pytest.raises(GraphNotFound):
        await graph_service.get_graph("missing")


@pytest.mark.asyncio
async def test_graph_detail_to_networkx(graph_service):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy", "SEO"], "keyword_jaccard", 0.1
    )
    detail = await graph_service.get_graph(created.graph_id)

    graph = detail.to_networkx()

    assert isinstance(graph, nx.Graph)
    assert not graph.is_directed()
    assert graph.number_of_nodes() == 3
    assert graph.number_of_edges() == 1
    ids = {node.label: node.id for node in detail.nodes}
    edge_data = graph[ids["PR Strategy"]][ids["Digital PR"]]
    assert edge_data["score"] == pytest.approx(0.3333, abs=1e-4)
    assert graph.nodes[ids["SEO"]]["label"] == "SEO"


@pytest.mark.asyncio
async def test_delete_graph_cascades(graph_service, db_manager):
    created = await graph_service.create_graph(
        None, ["Digital PR", "PR Strategy"], "keyword_jaccard", 0.1
    )

    assert await graph_service.delete_graph(created.graph_id) is True

    with pytest.raises(GraphNotFound):
        await graph_service.get_graph(created.graph_id)
    async with db_manager.session() as session:
        assert await TopicRepository(session).count_by_graph(created.graph_id) == 0
        assert await EdgeRepository(session).count_by_graph(created.graph_id) == 0

    assert await graph_service.delete_graph(created.graph_id) is False
