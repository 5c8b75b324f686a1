#!/usr/bin/env python3
# ==============================================================================
#  pgnshift - main.py
#  Purpose: one-shot runner for the full pgnshift pipeline
#           (PGN ingestion → move lineage)
# ==============================================================================

import sys
from pathlib import Path

# ------------------------------------------------------------------------------
# Paths & Imports
# ------------------------------------------------------------------------------

SRC_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SRC_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pgnshift.pipeline.run_cleaning import flag_subsumed_games
from pgnshift.pipeline.run_ingestion import run_pgn_ingestion
from pgnshift.utils.logging_utils import setup_logger

logger = setup_logger("main")

# ------------------------------------------------------------------------------
# Stage Wrapper
# ------------------------------------------------------------------------------


def _stage(title, fn):
    """
    Run a pipeline stage with start → finish logging and full stacktrace on error.
    """
    logger.info("%s – started", title)
    try:
        result = fn()
        logger.info("%s – finished", title)
        return result
    except Exception:  # pragma: no cover
        logger.exception("%s – failed", title)
        raise


if __name__ == "__main__":
    _stage("PGN Ingestion", run_pgn_ingestion)
    _stage("Move Lineage", flag_subsumed_games)
