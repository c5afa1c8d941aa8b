"""
Logging Configuration for the legal hybrid search engine

Every search module logs JSON lines to stdout through ``setup_logger(__name__)``.
Each line carries ``timestamp``, ``level``, ``logger`` and ``message`` plus a
constant ``service`` tag, so search, fusion and reranker logs from several
processes can be filtered together.
"""

import logging
import os
import sys

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "legal-hybrid-search"
ROOT_LOGGER_NAME = "legal_search"

_RENAMED_FIELDS = {"asctime": "timestamp", "levelname": "level", "name": "logger"}


def build_formatter() -> JsonFormatter:
    return JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        rename_fields=_RENAMED_FIELDS,
        static_fields={"service": SERVICE_NAME},
    )


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
) -> logging.Logger:
    """
    Create (or fetch) a JSON logger for a search module.

    Args:
        name: Logger name, normally the calling module's ``__name__``
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
               Defaults to the LOG_LEVEL env var, then INFO.

    Returns:
        The configured logger. Calling again with the same name does not add
        a second handler.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(build_formatter())
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level, logging.INFO))

    return logger


logger = setup_logger(ROOT_LOGGER_NAME)
