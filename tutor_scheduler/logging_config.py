"""Logging setup shared by the API process and scripts."""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once with a single stdout handler."""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]
    logging.captureWarnings(True)

    # uvicorn installs its own handlers; route them through root instead
    for noisy_logger in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        log = logging.getLogger(noisy_logger)
        log.handlers = []
        log.propagate = True
        log.setLevel(logging.WARNING)

    _configured = True
