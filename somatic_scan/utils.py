"""
Shared Utilities

Logger factory used by every module in the package.
"""
import logging
import sys
from typing import Optional

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stream handler to the package root logger."""
    global _configured
    root = logging.getLogger("somatic_scan")
    if level:
        root.setLevel(level.upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    if not level:
        root.setLevel(logging.INFO)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger, configuring the package handler on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
