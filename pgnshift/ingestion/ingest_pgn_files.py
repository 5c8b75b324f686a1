#!/usr/bin/env python3
# ==============================================================================
# ingest_pgn_files.py
# ------------------------------------------------------------------------------
# Reads PGN files (plain or zstd, one path or a glob), turns every game into a
# row via `read_pgn`, and inserts the rows into the games table.
#
# Execution flow:
#   1. Load settings from the environment (.env supported)
#   2. Build the SQLAlchemy engine and create the games table if missing
#   3. Stream GameRecords out of `read_pgn` into a batched `GameTableSink`
#   4. Log progress every PROGRESS_EVERY games and a summary at the end
# ==============================================================================

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, Final, Optional

from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))  # idempotent

from pgnshift.db.game_sink import GameTableSink
from pgnshift.db.schema import build_games_table
from pgnshift.ingestion.read_pgn import read_pgn
from pgnshift.utils.config import Settings, load_settings
from pgnshift.utils.diagnostics import Diagnostics
from pgnshift.utils.errors import UnsupportedOptionError
from pgnshift.utils.logging_utils import setup_logger

LOGGER = setup_logger("ingest_pgn_files")

PROGRESS_EVERY: Final[int] = int(os.getenv("PGN_PROGRESS_EVERY", 10000))


def build_engine(settings: Settings) -> Engine:
    return create_engine(settings.database_url, echo=settings.echo_sql)


def run_pgn_ingestion(
    settings: Optional[Settings] = None, engine: Optional[Engine] = None
) -> Dict[str, int]:
    """
    Ingest every game matched by PGN_PATH into the games table.

    Returns
    -------
    Dict[str, int]
        Reader counters plus the number of rows inserted.
    """
    settings = settings or load_settings()
    if not settings.pgn_path:
        raise UnsupportedOptionError("PGN_PATH is not set; nothing to ingest")

    engine = engine or build_engine(settings)
    metadata = MetaData()
    games = build_games_table(metadata, settings.table_name)
    metadata.create_all(engine)

    diagnostics = Diagnostics()
    records = read_pgn(
        settings.pgn_path,
        compression=settings.compression,
        max_workers=settings.max_workers,
        buffer_games=settings.buffer_games,
        diagnostics=diagnostics,
    )

    LOGGER.info(
        "Ingesting '%s' (compression=%s, workers=%d) into %s…",
        settings.pgn_path,
        settings.compression or "none",
        settings.max_workers,
        settings.table_name,
    )

    session_factory = sessionmaker(bind=engine)
    with session_factory() as session:
        with GameTableSink(session, games, settings.batch_size) as sink:
            for idx, record in enumerate(records, 1):
                sink.add(record)
                if idx % PROGRESS_EVERY == 0:
                    LOGGER.info("Processed %d game(s)…", idx)

    summary = diagnostics.summary()
    summary["inserted"] = sink.inserted
    LOGGER.info(
        "Done. Inserted=%d  WithErrors=%d  SkippedSources=%d",
        summary["inserted"],
        summary["games_with_errors"],
        summary["sources_skipped"],
    )
    return summary


if __name__ == "__main__":
    run_pgn_ingestion()
