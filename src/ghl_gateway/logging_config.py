"""structlog setup for the gateway.

Production renders one JSON object per line; development gets a colored
console and testing an uncolored one. ``configure_logging`` runs from the
FastAPI lifespan and may be called again (tests do) to reconfigure.

``tenant_id`` and ``request_id`` come from structlog contextvars bound by
:func:`ghl_gateway.context.bind_context`; call sites never pass them.
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import Any, TextIO

import structlog

REDACTED = "***REDACTED***"

# Compared after lower-casing, so ``apiKey`` matches ``apikey``.
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "api_key",
        "apikey",
        "access_token",
        "credential",
        "password",
        "secret",
        "token",
        "authorization",
        "encryption_key",
    }
)

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _scrub(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, str):
        return _BEARER_RE.sub(rf"\g<1>{REDACTED}", value)
    return value


def redact_credentials(
    logger: logging.Logger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Blank out credential-named keys (nested too) and bearer tokens in text."""
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _scrub(value)
    return event_dict


def _renderer(environment: str) -> structlog.types.Processor:
    if environment == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=environment != "testing")


def configure_logging(
    environment: str = "development",
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Install the structlog chain and route it through the stdlib root logger.

    Args:
        environment: ``production`` for JSON, ``testing`` for plain console,
            anything else for colored console.
        log_level: Root log level name.
        stream: Handler output, stdout by default. The CLI passes stderr so
            command output on stdout stays machine-readable.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            redact_credentials,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(environment),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
