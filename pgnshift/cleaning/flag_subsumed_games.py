# ==============================================================================
# flag_subsumed_games.py
# ------------------------------------------------------------------------------
# Computes move lineage for every stored game and writes it to
# pgn_game_lineage.
#
# Steps:
#   • Canonicalize each game's movetext (mainline SAN only)
#   • Hash the final position and count plies
#   • Sort canonical sequences; a sequence that is a prefix of another sorts
#     directly before one of its extensions, so one neighbour check per game
#     finds every subsumed game
#   • Replace the lineage rows in one transaction
# ==============================================================================

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# ------------------------------------------------------------------------------
# Path & Imports
# ------------------------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from pgnshift.analysis.movetext import parse_movetext_mainline, ply_count
from pgnshift.analysis.moves import is_subset, moves_hash
from pgnshift.db.schema import build_games_table
from pgnshift.utils.config import Settings, load_settings
from pgnshift.utils.logging_utils import setup_logger

LOGGER = setup_logger("flag_subsumed_games")

PROGRESS_EVERY = 1000


@dataclass
class LineageEntry:
    id_game: int
    movetext: str
    sans: Optional[Tuple[str, ...]]
    movetext_hash: Optional[int]
    ply_count: int
    subsumed_by: Optional[int] = None
    is_exact_duplicate: bool = False


def build_lineage_table(metadata: MetaData, name: str = "pgn_game_lineage") -> Table:
    return Table(
        name,
        metadata,
        Column("id_game", Integer, primary_key=True),
        Column("movetext_hash", String(20)),  # unsigned 64-bit, as text
        Column("ply_count", Integer),
        Column("subsumed_by", Integer, nullable=True),
        Column("is_exact_duplicate", Boolean, nullable=False, default=False),
        Column("tm_computed", DateTime(timezone=True)),
    )


# ------------------------------------------------------------------------------
# Lineage
# ------------------------------------------------------------------------------


def _entry_for(id_game: int, movetext: Optional[str]) -> LineageEntry:
    text = movetext or ""
    parsed = parse_movetext_mainline(text)
    return LineageEntry(
        id_game=id_game,
        movetext=text,
        sans=None if parsed.parse_error else parsed.sans,
        movetext_hash=moves_hash(text),
        ply_count=ply_count(text),
    )


def compute_lineage(rows: List[Tuple[int, Optional[str]]]) -> List[LineageEntry]:
    """
    Build lineage entries for ``(id_game, movetext)`` rows.

    Games whose movetext fails to canonicalize get a hash / ply count but are
    never linked to another game.
    """
    entries = []
    for idx, (id_game, movetext) in enumerate(rows, 1):
        entries.append(_entry_for(id_game, movetext))
        if idx % PROGRESS_EVERY == 0:
            LOGGER.info("Processed %d/%d…", idx, len(rows))

    ordered = sorted(
        (e for e in entries if e.sans is not None),
        key=lambda e: (e.sans, e.id_game),
    )
    for current, following in zip(ordered, ordered[1:]):
        if is_subset(current.movetext, following.movetext):
            current.subsumed_by = following.id_game
            current.is_exact_duplicate = current.sans == following.sans

    return entries


# ------------------------------------------------------------------------------
# Controller
# ------------------------------------------------------------------------------


def flag_subsumed_games(
    settings: Optional[Settings] = None, engine: Optional[Engine] = None
) -> Dict[str, int]:
    """Recompute pgn_game_lineage from the games table."""
    settings = settings or load_settings()
    engine = engine or create_engine(settings.database_url)

    metadata = MetaData()
    games = build_games_table(metadata, settings.table_name)
    lineage = build_lineage_table(metadata, settings.lineage_table_name)
    metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine)
    with session_factory() as session:
        with session.begin():
            rows = session.execute(select(games.c.id_game, games.c.movetext)).all()

        LOGGER.info("Computing lineage for %d game(s)…", len(rows))
        entries = compute_lineage([(id_game, movetext) for id_game, movetext in rows])

        now = datetime.now(timezone.utc)
        with session.begin():
            session.execute(delete(lineage))
            if entries:
                session.execute(
                    lineage.insert(),
                    [
                        {
                            "id_game": e.id_game,
                            "movetext_hash": (
                                str(e.movetext_hash)
                                if e.movetext_hash is not None
                                else None
                            ),
                            "ply_count": e.ply_count,
                            "subsumed_by": e.subsumed_by,
                            "is_exact_duplicate": e.is_exact_duplicate,
                            "tm_computed": now,
                        }
                        for e in entries
                    ],
                )

    subsumed = sum(1 for e in entries if e.subsumed_by is not None)
    duplicates = sum(1 for e in entries if e.is_exact_duplicate)
    LOGGER.info(
        "Done. Games=%d  Subsumed=%d  ExactDuplicates=%d",
        len(entries),
        subsumed,
        duplicates,
    )
    return {"games": len(entries), "subsumed": subsumed, "exact_duplicates": duplicates}


if __name__ == "__main__":
    flag_subsumed_games()
