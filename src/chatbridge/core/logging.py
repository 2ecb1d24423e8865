"""
Structured logging configuration for chatbridge.

Every module uses::

    import structlog
    logger = structlog.get_logger()

and logs snake_case events with key/value context::

    logger.info("stream_opened", provider="openai", conversation_id="c-1")

Both structlog and stdlib records (httpx, asyncio) pass through the same
processor chain and end in one stderr handler.  The chain includes
``redact_secrets``: credential values must never reach a log sink, so any
event key that names a secret is masked before rendering, and free-text
values are scrubbed of anything shaped like a vendor API key.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

REDACTED = "[redacted]"

#: Event keys whose values are always masked (compared lowercased)
SECRET_KEYS = frozenset(
    {"api_key", "apikey", "value", "key", "authorization", "x-api-key", "token", "secret"}
)

_KEY_PATTERN = re.compile(r"\b(sk-[A-Za-z0-9_\-]{8,})")

_HANDLER_NAME = "chatbridge"


def _scrub(text: str) -> str:
    return _KEY_PATTERN.sub(lambda m: m.group(1)[:6] + "..." + REDACTED, text)


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: mask secret-named keys and key-shaped substrings."""
    for name, val in list(event_dict.items()):
        if name.lower() in SECRET_KEYS and val not in (None, ""):
            event_dict[name] = REDACTED
        elif isinstance(val, str):
            event_dict[name] = _scrub(val)
    return event_dict


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structlog + stdlib logging for the process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Emit JSON lines instead of the console renderer.

    Calling it again replaces the renderer and level in place; the stderr
    handler is installed once.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    root = logging.getLogger()
    handler = next((h for h in root.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)
    handler.setFormatter(formatter)
    root.setLevel(log_level)

    # Request/response lines from the HTTP stack are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
