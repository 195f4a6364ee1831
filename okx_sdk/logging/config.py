"""
Centralized logging configuration for the OKX client.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the library should use this
configuration so that state transitions and dropped frames are reported
consistently and secret material never reaches a log sink.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, FilteringBoundLogger

REDACTED = "***"

SECRET_KEYS = frozenset({
    "api_secret",
    "secret",
    "passphrase",
    "sign",
    "signature",
    "OK-ACCESS-SIGN",
    "OK-ACCESS-PASSPHRASE",
})


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values of known secret keys, including one level of nesting."""
    for key, value in list(event_dict.items()):
        if key in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: (REDACTED if k in SECRET_KEYS else v) for k, v in value.items()
            }
    return event_dict


# Third-party loggers that are chatty at DEBUG (frame dumps, connection pool).
LIBRARY_LOGGERS = ("websockets", "aiohttp", "asyncio")


def _context_processors(include_timestamp: bool, include_caller: bool) -> list:
    """Processors that enrich an event before it is rendered."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.MODULE,
                        structlog.processors.CallsiteParameter.LINENO]
        ))
    return processors


def _renderer(format_json: bool) -> Any:
    if format_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None,
    library_level: str = "WARNING",
) -> None:
    """
    Configure structlog for the OKX client.

    Events go through the standard library so applications embedding the
    client keep control of handlers. Secret redaction always runs last,
    after any ``extra_processors``, right before rendering.

    Args:
        level: Level for okx_sdk events (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: Render one JSON object per line instead of console output
        include_timestamp: Add an ISO-8601 UTC timestamp
        include_caller: Add module name and line number
        extra_processors: Additional structlog processors to include
        library_level: Level applied to the websockets/aiohttp/asyncio loggers
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(level=log_level, stream=sys.stderr, format="%(message)s")
    logging.getLogger("okx_sdk").setLevel(log_level)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(getattr(logging, library_level.upper()))

    processors = _context_processors(include_timestamp, include_caller)
    processors.extend(extra_processors or [])
    processors.append(redact_secrets)
    processors.append(_renderer(format_json))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_session_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for streaming session events.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for session lifecycle events
    """
    return structlog.get_logger(name, subsystem="stream_session")


def get_rest_logger(name: str) -> FilteringBoundLogger:
    """Get a logger bound for REST request events."""
    return structlog.get_logger(name, subsystem="rest")


def log_state_transition(
    logger: FilteringBoundLogger,
    session_id: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a session state transition with standardized format.

    Args:
        logger: Structlog logger instance
        session_id: ID of the session transitioning
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        session_id=session_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("state_transition")


def log_dropped_frame(
    logger: FilteringBoundLogger,
    reason: str,
    frame: Any,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log an inbound frame that could not be delivered.

    Args:
        logger: Structlog logger instance
        reason: Why the frame was dropped (unroutable, decode_error, overflow)
        frame: The raw frame or a short excerpt of it
        context: Additional context data
    """
    excerpt = frame if isinstance(frame, str) else repr(frame)
    bound_logger = logger.bind(reason=reason, frame=excerpt[:200])

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.warning("frame_dropped")
