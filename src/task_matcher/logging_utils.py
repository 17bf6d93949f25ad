"""structlog setup driven by `MatcherSettings`."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

import structlog

from .config import MatcherSettings


def _environment_tagger(app_env: str) -> structlog.types.Processor:
    def tag_environment(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("app_env", app_env)
        return event_dict

    return tag_environment


def configure_logging(settings: MatcherSettings) -> None:
    """Route structlog through stdlib logging at ``settings.log_level``.

    Development gets the coloured console renderer; production and test runs
    emit one JSON object per line.
    """
    level = settings.log_level.upper()
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)

    processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _environment_tagger(settings.app_env),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.app_env == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer()])

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
