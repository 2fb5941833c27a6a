"""
Logging setup for the proxy and the search service.

Formatters, handlers and per-library levels come from the packaged
`config/logging.yaml`. Our own verbosity (`app.log_level`, `MADSPILD_LOG_LEVEL`)
is applied to the `madspild` logger only, so raising it to DEBUG shows dropped
upstream records without turning on httpx's request logging as well.
"""

from __future__ import annotations

import copy
import logging
import logging.config

from madspild.config.settings import get_logging_config, get_settings

PACKAGE_LOGGER = "madspild"


def _level_name(level: str) -> str:
    name = level.strip().upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"Unknown log level: {level!r}")
    return name


def configure_logging(level: str | None = None) -> str:
    """Apply the packaged logging config and return the package log level.

    `level` overrides `app.log_level` from settings.
    """
    name = _level_name(level or get_settings().app.log_level)
    wanted = logging.getLevelName(name)

    # get_logging_config() is cached; work on a copy.
    config = copy.deepcopy(get_logging_config())
    config.setdefault("loggers", {})[PACKAGE_LOGGER] = {"level": name}
    for handler in config.get("handlers", {}).values():
        if not isinstance(handler, dict):
            continue
        if logging.getLevelName(str(handler.get("level", "NOTSET")).upper()) > wanted:
            handler["level"] = name

    logging.config.dictConfig(config)
    return name
