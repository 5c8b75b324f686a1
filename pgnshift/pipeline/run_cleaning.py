#!/usr/bin/env python3
# ==============================================================================
# run_cleaning.py  –  Entry point for move-lineage cleaning
#   Calls: pgnshift.cleaning.flag_subsumed_games.flag_subsumed_games
# ==============================================================================

import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env")

CURRENT_FILE = Path(__file__).resolve()
PROJECT_ROOT = CURRENT_FILE.parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pgnshift.cleaning.flag_subsumed_games import flag_subsumed_games


if __name__ == "__main__":
    flag_subsumed_games()
