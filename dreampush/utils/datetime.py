from __future__ import annotations
from datetime import datetime, UTC

__all__ = ["utc_now"]

def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)
