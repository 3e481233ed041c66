"""structlog setup: JSON lines in deployments, console output for local runs."""

import logging

import structlog

from bookquest.config import Settings


def _app_context(settings: Settings) -> structlog.types.Processor:
    """Stamp every event with the running version and environment."""
    context = {"app": "bookquest", "version": settings.app_version, "environment": settings.environment}

    def add_context(_logger: object, _method: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog from ``BQ_LOG_FORMAT`` and ``BQ_LOG_LEVEL``."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer() if settings.log_format == "console" else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            _app_context(settings),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    # Seeding and migrations log through stdlib; keep SQL echo out of the stream.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
