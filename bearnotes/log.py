from __future__ import annotations
import logging
import os
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging; ``level`` falls back to ``BEARNOTES_LOG_LEVEL``."""
    name = (level or os.getenv("BEARNOTES_LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
