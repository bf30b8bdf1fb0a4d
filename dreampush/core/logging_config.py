"""Logging setup shared by the API process and the operator script."""

import logging
import sys

from dreampush.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure root logging once and return the application logger."""
    resolved = (level or settings.log_level or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_dreampush", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._dreampush = True
        root.addHandler(handler)
    root.setLevel(resolved)

    # httpx logs one INFO line per request
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("dreampush")
