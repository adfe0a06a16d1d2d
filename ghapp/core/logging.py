"""Structured logging via structlog.

Configures structlog once at process startup. Library modules keep using
``logging.getLogger(__name__)``; their records are routed through
``structlog.stdlib.ProcessorFormatter`` so they get the same processors as
``structlog.get_logger()`` callers.

Renderer selection:
  debug=True:  `ConsoleRenderer` for interactive use.
  debug=False: `JSONRenderer` for CI / Cloud Logging.

Output goes to stderr. Commands that print a token or an installation id
write those to stdout, and the two must not interleave.

Redaction:
  Every event passes through `redact_secrets`, which masks installation
  tokens, personal access tokens, JWT-shaped strings and credentials
  embedded in URLs wherever they appear in string values.
"""

from __future__ import annotations

import logging
import re
import sys

import structlog

_TOKEN_PATTERNS = [
    # Installation, user, OAuth and PAT tokens (ghs_, ghu_, gho_, ghp_, ghr_)
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{16,}\b"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"),
    # Compact JWS: three base64url segments, header always starts with eyJ
    re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
]
_URL_CREDENTIALS = re.compile(r"(https?://)[^/\s:@]+(:[^/\s@]*)?@")

REDACTED = "***"


def redact_text(text: str) -> str:
    """Mask bearer credentials in free text."""
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return _URL_CREDENTIALS.sub(lambda m: f"{m.group(1)}{REDACTED}@", text)


def redact_secrets(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: scrub credentials from every string value."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_text(value)
    return event_dict


def configure_structlog(debug: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; the last call wins.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    # httpx logs every request URL at INFO; keep it quiet outside debug.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
