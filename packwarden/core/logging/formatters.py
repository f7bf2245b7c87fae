# packwarden/core/logging/formatters.py
from __future__ import annotations

import logging
from typing import Any

from packwarden.core.jsonutils import safeJsonDumps
from packwarden.core.redaction import redactText
from .context import getLogContext

__all__ = ["CONTEXT_KEYS", "RedactingFormatter", "JsonFormatter", "DevFormatter"]

# Context keys shown on console lines, in this order
CONTEXT_KEYS: tuple[str, ...] = ("command", "file")



def _contextSuffix(ctx: dict[str, Any] | None) -> str:
    parts = [str(ctx[key]) for key in CONTEXT_KEYS if ctx and ctx.get(key)]
    return f" [{'/'.join(parts)}]" if parts else ""



class RedactingFormatter(logging.Formatter):
    """Delegates to `inner`, then scrubs credentials from whatever it rendered."""
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self.inner = inner

    def format(self, record: logging.LogRecord) -> str:
        return redactText(self.inner.format(record))



class JsonFormatter(logging.Formatter):
    """One JSON object per line for the optional log file."""
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": round(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "src": f"{record.module}:{record.lineno}",
            "ctx": getLogContext() or {},
            "proc": {"pid": record.process, "name": record.processName},
        }
        if record.exc_info and record.exc_info[1] is not None:
            err = record.exc_info[1]
            payload["exc"] = {
                "type": type(err).__name__,
                "message": str(err),
                "stack": self.formatException(record.exc_info),
            }
        return safeJsonDumps(payload)



class DevFormatter(logging.Formatter):
    """Console lines: `LEVEL: [logger] message [command/file]`, tracebacks below."""
    def format(self, record: logging.LogRecord) -> str:
        lines = [f"{record.levelname}: [{record.name}] {record.getMessage()}{_contextSuffix(getLogContext())}"]
        if record.exc_info:
            lines.append(self.formatException(record.exc_info))
        if record.stack_info:
            lines.append(self.formatStack(record.stack_info))
        return "\n".join(lines)
