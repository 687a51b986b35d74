"""Structured logging with per-run context using structlog and contextvars."""

import logging
from contextvars import ContextVar

import structlog

# Context variables for the current measurement run
current_run_id: ContextVar[str | None] = ContextVar("current_run_id", default=None)
current_package: ContextVar[str | None] = ContextVar("current_package", default=None)

_configured = False


def setup_structured_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog with per-run context.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Render JSON lines instead of the console renderer
    """
    global _configured
    if _configured:
        return

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # Inject run context
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
    )

    _configured = True


def bind_run_context(run_id: str, package: str) -> None:
    """Bind run context for all subsequent logs in this async context.

    Args:
        run_id: Unique measurement run identifier
        package: Repository URL of the package being measured
    """
    current_run_id.set(run_id)
    current_package.set(package)
    structlog.contextvars.bind_contextvars(run_id=run_id, package=package)


def clear_run_context() -> None:
    """Clear run context after the measurement completes."""
    current_run_id.set(None)
    current_package.set(None)
    structlog.contextvars.clear_contextvars()


def get_run_logger(name: str = "swift_package_size") -> structlog.stdlib.BoundLogger:
    """Get a structlog logger with run context."""
    return structlog.get_logger(name)


def get_current_run_id() -> str | None:
    """Get the current run ID from context."""
    return current_run_id.get()
