"""structlog configuration shared by the API process and background jobs.

Two renderers hang off one processor chain: a coloured ConsoleRenderer for
local work and a JSONRenderer for production (``APP_ENV=production`` or the
``json_output`` flag).  The stdlib root logger is routed through the same
chain so httpx, uvicorn, and qdrant-client emit the same shape of record as
our own ``ingestion_*`` / ``crawl_*`` events.
"""

import logging
import os
import sys

import structlog

# Third-party loggers that flood DEBUG/INFO with per-request lines.
_NOISY_LOGGERS = ("httpx", "httpcore", "qdrant_client", "openai", "anthropic")


def _shared_processors() -> list[structlog.types.Processor]:
    # contextvars first so request-scoped bindings reach every record.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib bridge.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON rendering regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    shared = _shared_processors()

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared, renderer],
        # Filtering happens before the chain runs, so dropped DEBUG calls cost nothing.
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)
