"""Logging setup shared by the compiler, the exporter and the MCP server."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Set

# Optional file logging, off unless SCENEGRAPH_LOG_DIR is set
LOG_DIR = os.getenv("SCENEGRAPH_LOG_DIR")

# Prevent duplicate handlers
_configured_loggers: Set[str] = set()


def setup_logger(name: str = "scenegraph", filename: Optional[str] = None,
                 level: int = logging.INFO) -> logging.Logger:
    """Attach a stderr handler (and a file handler if LOG_DIR is set).

    stdout is reserved for the MCP stdio transport, so console output goes
    to stderr.

    Args:
        name: Logger name; child loggers ("scenegraph.assets") inherit it
        filename: Log file name inside LOG_DIR, defaults to "<name>.log"
        level: Logging level for the logger and its handlers

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s"
    ))
    logger.addHandler(sh)

    if LOG_DIR:
        log_dir = Path(LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / (filename or f"{name}.log"), encoding='utf-8')
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
        ))
        logger.addHandler(fh)

    _configured_loggers.add(name)
    return logger
