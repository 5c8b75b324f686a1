# ==============================================================================
# logging_utils.py  –  Consistent console (+ optional file) logging
#
# Features:
#   ✔ Console output on stdout, optional timestamped file output
#   ✔ Level taken from CHESS_LOG (error / warn / info / debug)
#   ✔ Idempotent: clears handlers before re-adding
# ==============================================================================

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

# ------------------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------------------

_FMT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DEFAULT_LEVEL = logging.INFO

_LEVEL_NAMES: Dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


# ------------------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------------------


def _level_from_env(default: int = _DEFAULT_LEVEL) -> int:
    """Map CHESS_LOG to a logging level; unknown values keep the default."""
    raw = os.getenv("CHESS_LOG", "").strip().lower()
    return _LEVEL_NAMES.get(raw, default)


def _detect_logs_dir() -> Optional[Path]:
    """
    Detect where log files should be stored.

    • PGNSHIFT_LOG_DIR set → that directory
    • otherwise           → None (console only)
    """
    configured = os.getenv("PGNSHIFT_LOG_DIR", "").strip()
    return Path(configured) if configured else None


def _init_file_handler(
    logs_dir: Path, logger_name: str, fmt: logging.Formatter
) -> Optional[logging.Handler]:
    """
    Create a timestamped FileHandler if directory is writable.
    Falls back to console logging if not.
    """
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        file_path = logs_dir / f"{logger_name}_{timestamp}.log"

        fh = logging.FileHandler(file_path, encoding="utf-8")
        fh.setFormatter(fmt)
        return fh
    except PermissionError:
        logging.getLogger().warning("Cannot write logs to %s", logs_dir)
        return None


# ------------------------------------------------------------------------------
# Public factory
# ------------------------------------------------------------------------------


def setup_logger(
    name: str,
    level: Optional[int] = None,
    logs_dir: Union[str, Path, None] = None,
) -> logging.Logger:
    """
    Return a fresh `logging.Logger`.

    Parameters
    ----------
    name : str
        Logger name (used in file naming).
    level : int | None
        Logging level. ``None`` reads CHESS_LOG (INFO when unset).
    logs_dir : str | Path | None
        Override log directory (default: PGNSHIFT_LOG_DIR, else no file).
    """
    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else _level_from_env())

    # Clear existing handlers for idempotency
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(_FMT)

    # Console handler
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    # File handler
    target_dir = Path(logs_dir) if logs_dir else _detect_logs_dir()
    if target_dir is not None:
        file_handler = _init_file_handler(target_dir, name, formatter)
        if file_handler:
            logger.addHandler(file_handler)

    return logger
