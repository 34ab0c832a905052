"""
gateway_pipeline.core.logging - Structured Logging Setup
==========================================================

Every component logs through structlog with a module-level logger bound to
its component name:

    logger = structlog.get_logger()
    self._logger = logger.bind(component="pipeline_orchestrator")
    self._logger.info("execution_started", execution_id=..., commit_id=...)

Nothing is configured on import. Applications call `configure_logging` once
at startup; library code only emits events.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Route structlog through the stdlib logging module.

    Args:
        level: Minimum level name ("DEBUG", "INFO", ...).
        json_output: Emit one JSON object per line instead of console text.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
