from __future__ import annotations

import logging
import sys
import time
from typing import TextIO

NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str, stream: TextIO | None = None) -> None:
    """Route records to ``stream`` (stderr by default, stdout carries chat output)."""
    logging.Formatter.converter = time.gmtime

    resolved_level = getattr(logging, level, logging.INFO)
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(stream or sys.stderr)],
        force=True,
    )

    # httpx logs every request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))

    logging.captureWarnings(True)
