"""
Pytest configuration and shared fixtures for topic graph tests.

This module provides:
- A SQLite-backed DatabaseManager on a temporary file
- GraphService instances wired to it
- Deterministic identifier factories
"""

import itertools

import pytest
import pytest_asyncio

from topic_graph.common.config import Settings
from topic_graph.database.connection import DatabaseManager
from topic_graph.graph.graph_service import GraphService


@pytest.fixture
def settings():
    """Settings with production defaults and an in-test database URL."""
    return Settings(database_url="sqlite+aiosqlite://")


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    """
    DatabaseManager backed by a fresh SQLite file per test.

    Tables are created up front and connections disposed afterwards.
    """
    manager = DatabaseManager(database_url=f"sqlite+aiosqlite:///{tmp_path / 'topic_graph.db'}")
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def graph_service(db_manager, settings):
    """GraphService with random UUID identifiers."""
    return GraphService(db_manager, settings=settings)


def descending_ids(start: int = 9999):
    """
    Identifier factory producing zero-padded, strictly decreasing ids.

    Later-created topics get smaller ids, so identifier order runs opposite
    to creation order.
    """
    counter = itertools.count(start, -1)
    return lambda: f"{next(counter):04d}"


@pytest.fixture
def descending_graph_service(db_manager, settings):
    """GraphService whose identifiers decrease with every allocation."""
    return GraphService(db_manager, settings=settings, id_factory=descending_ids())
