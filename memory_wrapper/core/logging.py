"""Logging configuration for the memory wrapper.

Everything goes to stdout: the add-on supervisor (Docker / Home Assistant)
captures the container's stdout and shows it in the add-on log panel.

TWO FORMATTERS
----------------
  _ContainerFormatter: human-readable, single-line, the default.
    This is what shows up in the Home Assistant "Log" tab.

  _JsonFormatter: one JSON object per line, for log shippers.
    Set LOG_JSON=true to switch.  Request context attached by
    RequestContextMiddleware (request_id, method, path, status_code,
    duration_ms, auth_method) becomes top-level keys.

SECRETS
--------
Client secrets, authorization codes, bearer tokens and API keys must never
reach a log line.  Call sites log identifiers (client_id, code hash prefix)
instead, and _RedactingFilter masks anything that still looks like a
credential (Bearer header values, client_secret=..., three-part tokens).
"""

from __future__ import annotations

import json
import logging
import re
import sys

_REDACTIONS = (
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+"), r"\1[REDACTED]"),
    (
        re.compile(r"\b((?:client_secret|api_key|access_token|code)=)[^\s&]+"),
        r"\1[REDACTED]",
    ),
    (
        re.compile(r"\b[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{20,}\b"),
        "[REDACTED-TOKEN]",
    ),
)


def redact(message: str) -> str:
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


class _RedactingFilter(logging.Filter):
    """Rewrite the rendered message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage()
        cleaned = redact(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for the add-on log panel.

        2024-05-01T12:00:00.123+0000 INFO     memory_wrapper.api.oauth [3f2c…]  message

    The [request id] part only appears for lines logged inside a request.
    WARNING and above append [filename:lineno]; tracebacks follow the line.
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s%(context)s  %(message)s%(location)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Insert .NNN before the timezone offset (last 5 chars: +0000)
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        request_id = getattr(record, "request_id", "-")
        record.context = f" [{request_id}]" if request_id != "-" else ""
        record.location = (
            f"  [{record.filename}:{record.lineno}]"
            if record.levelno >= logging.WARNING
            else ""
        )
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Extra context fields are copied onto the entry only when present, so a
    log line emitted outside a request stays small.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "auth_method",
        "client_id",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for the add-on container.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: If True, emit JSON lines. If False, human-readable.
                     Controlled by LOG_JSON in Settings.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_RedactingFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Keep third-party loggers from flooding at DEBUG
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
