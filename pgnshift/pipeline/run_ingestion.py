#!/usr/bin/env python3
# ==============================================================================
# run_ingestion.py  –  Entry point for PGN file ingestion
#   Calls: pgnshift.ingestion.ingest_pgn_files.run_pgn_ingestion
#   Usage: run_ingestion.py [PATH_OR_GLOB]   (default: $PGN_PATH)
# ==============================================================================

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env")

CURRENT_FILE = Path(__file__).resolve()
PROJECT_ROOT = CURRENT_FILE.parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pgnshift.ingestion.ingest_pgn_files import run_pgn_ingestion

if __name__ == "__main__":
    if len(sys.argv) > 1:
        os.environ["PGN_PATH"] = sys.argv[1]
    run_pgn_ingestion()
