"""
Application wiring: logging, settings, database and graph service.
"""

import logging

from .common.config import load_settings
from .common.logging_utils import setup_logging
from .database.connection import DatabaseManager
from .graph.graph_service import GraphService

logger = logging.getLogger(__name__)


async def init_graph_service(config_path: str = "config.yaml") -> GraphService:
    """
    Build a ready-to-use GraphService from config.yaml and the environment.

    Configures logging, resolves Settings, creates the tables if needed and
    returns the service. Call ``service.db.close()`` on shutdown.
    """
    setup_logging(config_path)
    settings = load_settings(config_path)

    db_manager = DatabaseManager(
        database_url=settings.database_url,
        pool_size=settings.pool_size,
        echo=settings.echo,
    )
    await db_manager.initialize()

    logger.info(
        "Graph service ready (default strategy=%s, default threshold=%.4f)",
        settings.default_strategy,
        settings.default_threshold,
    )
    return GraphService(db_manager, settings=settings)
