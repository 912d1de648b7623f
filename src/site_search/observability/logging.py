"""Structured JSON logging for the search core.

Each line carries the trace, span and operation bound in
:mod:`site_search.observability.context`. Requester metadata passed as
``extra`` is scrubbed before it reaches the log: client addresses are
masked to their network prefix, query text is cut to the stored length,
and secret-looking keys are replaced outright.
"""

from __future__ import annotations

from datetime import datetime, timezone
import ipaddress
import logging
from pathlib import Path
import sys
from typing import IO, Any

import orjson

from site_search.domain.model import MAX_META_LENGTH, MAX_QUERY_LENGTH
from site_search.observability.context import get_trace_context


PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty libraries kept at WARNING unless overridden through logger_levels
QUIET_LOGGERS = ("asyncio", "opentelemetry")


def mask_client_ip(value: str) -> str:
    """Zero the host part of an address (/24 for IPv4, /48 for IPv6)."""
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return "[REDACTED]"
    prefix = 24 if address.version == 4 else 48
    return str(ipaddress.ip_network(f"{address}/{prefix}", strict=False).network_address)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, correlated with the active trace."""

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    QUERY_KEYS = frozenset({"query", "term", "raw_query"})
    META_KEYS = frozenset({"user_agent", "referrer"})
    MAX_MESSAGE_LEN = 2000

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_trace_context()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": self._truncate(record.getMessage(), self.MAX_MESSAGE_LEN),
            "logger": record.name,
            "trace_id": ctx.get("trace_id", ""),
            "span_id": ctx.get("span_id", ""),
        }
        if "." in record.name:
            entry["component"] = record.name.rsplit(".", 1)[-1]
        if operation := ctx.get("operation"):
            entry["operation"] = operation
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and not key.startswith("_"):
                entry[key] = self._scrub(key, value)

        return orjson.dumps(entry, default=self._json_default).decode("utf-8")

    @staticmethod
    def _truncate(text: str, limit: int) -> str:
        if len(text) > limit:
            return text[:limit] + "..."
        return text

    def _scrub(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.REDACT_KEYS:
            return "[REDACTED]"
        if not isinstance(value, str):
            return value
        if lowered == "client_ip":
            return mask_client_ip(value)
        if lowered in self.QUERY_KEYS:
            return self._truncate(value, MAX_QUERY_LENGTH)
        if lowered in self.META_KEYS:
            return self._truncate(value, MAX_META_LENGTH)
        return self._truncate(value, self.MAX_MESSAGE_LEN)

    @staticmethod
    def _json_default(value: Any) -> Any:
        if isinstance(value, (set, frozenset)):
            try:
                return sorted(value)
            except TypeError:
                return list(value)
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, Exception):
            return str(value)
        return repr(value)


_STANDARD_RECORD_KEYS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


def _resolve_level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install a single root handler writing to stderr (or ``stream``).

    Args:
        level: Root log level name, case-insensitive
        json_output: Emit JSON lines when True, plain text otherwise
        logger_levels: Per-logger level overrides (logger name -> level name)
        stream: Destination stream, mainly for tests
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for logger_name, logger_level in (logger_levels or {}).items():
        logging.getLogger(logger_name).setLevel(_resolve_level(logger_level))
