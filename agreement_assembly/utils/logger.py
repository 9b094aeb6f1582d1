"""Centralized logging configuration.
Call setup_logging() once at application startup.
"""

from __future__ import annotations

import io
import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the assembly engine."""
    root = logging.getLogger()
    # Avoid duplicate handlers on repeated calls
    if root.handlers:
        return

    level_value = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(level_value)

    # Use a stream wrapper that can handle Unicode on Windows consoles
    stream = sys.stdout
    if hasattr(sys.stdout, "buffer"):
        stream = io.TextIOWrapper(
            sys.stdout.buffer, encoding="utf-8", errors="replace", line_buffering=True
        )
    handler = logging.StreamHandler(stream)
    handler.setLevel(level_value)

    formatter = logging.Formatter(
        fmt="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(funcName)s:%(lineno)d │ %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # Quiet noisy libraries but keep our code at the requested level
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
