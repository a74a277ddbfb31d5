"""
Logging setup for the topic graph engine.

Reads the `logging` section of `config.yaml`:

- `level`: root level, overridden by the LOG_LEVEL environment variable
- `format`: record format shared by all handlers
- `file`: optional path of an extra file handler
- `loggers`: per-logger levels, e.g. ``topic_graph.graph: DEBUG``

SQLAlchemy's engine logger is held at WARNING unless `database.echo` is on,
so statement logging follows the same switch as the engine.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import load_config

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SQL_LOGGER = "sqlalchemy.engine"


def _level(value: Any, fallback: str = "INFO") -> str:
    return str(value or fallback).upper()


def _handlers(log_file: Optional[str]) -> Tuple[Dict[str, Any], List[str]]:
    # Handlers pass everything; loggers decide what is emitted
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "filename": log_file,
            "encoding": "utf-8",
        }
    return handlers, list(handlers)


def _logger_levels(overrides: Mapping[str, Any], sql_echo: bool) -> Dict[str, Dict[str, str]]:
    loggers = {SQL_LOGGER: {"level": "INFO" if sql_echo else "WARNING"}}
    for name, level in (overrides or {}).items():
        loggers[name] = {"level": _level(level)}
    return loggers


def build_logging_config(
    logging_cfg: Mapping[str, Any],
    sql_echo: bool = False,
) -> Dict[str, Any]:
    """
    Build a dictConfig mapping for the topic graph engine.

    Args:
        logging_cfg: The `logging` section of config.yaml
        sql_echo: Whether SQLAlchemy statement logging is wanted

    Returns:
        Mapping suitable for ``logging.config.dictConfig``
    """
    root_level = _level(os.getenv("LOG_LEVEL") or logging_cfg.get("level"))
    handlers, handler_names = _handlers(logging_cfg.get("file"))

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": logging_cfg.get("format", DEFAULT_LOG_FORMAT)},
        },
        "handlers": handlers,
        "loggers": _logger_levels(logging_cfg.get("loggers", {}), sql_echo),
        "root": {"level": root_level, "handlers": handler_names},
    }


def setup_logging(config_path: str = "config.yaml") -> None:
    """Configure logging once from the `logging` and `database` sections of config.yaml."""
    config = load_config(config_path)
    if not isinstance(config, dict):
        config = {}
    logging_cfg = config.get("logging") or {}
    sql_echo = bool((config.get("database") or {}).get("echo", False))
    logging.config.dictConfig(build_logging_config(logging_cfg, sql_echo=sql_echo))
