# packwarden/core/logging/setup.py
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from .filters import RecurringSuppressFilter
from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = ["NO_PROPAGATE", "configureLogging"]



# Disable propagation from chatty libraries
NO_PROPAGATE = [
    "httpcore.connection", "httpcore.http11",
    "httpx",
]

# Marks handlers installed by configureLogging so a second call replaces them
_OWNED_ATTR = "_packwardenHandler"



def configureLogging(level: str | int = "INFO", *, jsonFile: str | Path | None = None, suppressRecurring: bool = False) -> None:
    """
    Initiate the logging configuration for one CLI run.

      - Console pretty logs on stderr at `level`
      - Optional JSON file log with rotation (10 MiB x 5)
      - Token scrubbing on every sink
      - Optional recurring-message suppression
    """
    if isinstance(level, str):
        rootLevel = logging.getLevelName(level.upper())
        if not isinstance(rootLevel, int):
            rootLevel = logging.INFO
    else:
        rootLevel = int(level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _OWNED_ATTR, False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(rootLevel)

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    handlers: list[logging.Handler] = []

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(RedactingFormatter(DevFormatter()))
    handlers.append(consoleHandler)

    if jsonFile:
        jsonPath = Path(jsonFile)
        jsonPath.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            jsonPath,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(RedactingFormatter(JsonFormatter()))
        handlers.append(fileHandler)

    if suppressRecurring:
        suppressFilter = RecurringSuppressFilter()
        for handler in handlers:
            handler.addFilter(suppressFilter)

    for handler in handlers:
        setattr(handler, _OWNED_ATTR, True)
        root.addHandler(handler)

    # Per-logger tweaks (reduce noise)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
