# ==============================================================================
# schema.py  –  Single source of truth for the PGN game row layout
# ------------------------------------------------------------------------------
# `COLUMNS` drives both the SQLAlchemy table definition and
# `GameRecord.to_row()`, so the two can never drift apart.
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import Column, Date, Integer, MetaData, String, Table, Text, Time
from sqlalchemy.types import TypeEngine


class ColumnSpec(NamedTuple):
    name: str  # column name as stored
    attr: str  # GameRecord attribute
    type_: TypeEngine


COLUMNS: List[ColumnSpec] = [
    ColumnSpec("Event", "event", String()),
    ColumnSpec("Site", "site", String()),
    ColumnSpec("White", "white", String()),
    ColumnSpec("Black", "black", String()),
    ColumnSpec("Result", "result", String()),
    ColumnSpec("WhiteTitle", "white_title", String()),
    ColumnSpec("BlackTitle", "black_title", String()),
    ColumnSpec("WhiteElo", "white_elo", Integer()),
    ColumnSpec("BlackElo", "black_elo", Integer()),
    ColumnSpec("UTCDate", "utc_date", Date()),
    ColumnSpec("UTCTime", "utc_time", Time(timezone=True)),
    ColumnSpec("ECO", "eco", String()),
    ColumnSpec("Opening", "opening", String()),
    ColumnSpec("Termination", "termination", String()),
    ColumnSpec("TimeControl", "time_control", String()),
    ColumnSpec("movetext", "movetext", Text()),
    ColumnSpec("parse_error", "parse_error", Text()),
    ColumnSpec("Source", "source", String()),
]

# Columns holding free text (NUL sanitization applies to these).
TEXT_COLUMNS: List[str] = [
    c.name for c in COLUMNS if isinstance(c.type_, (String, Text))
]


def column_names() -> List[str]:
    return [c.name for c in COLUMNS]


def build_games_table(metadata: MetaData, name: str = "pgn_games") -> Table:
    """Return the games table bound to `metadata` (one extra surrogate key)."""
    return Table(
        name,
        metadata,
        Column("id_game", Integer, primary_key=True, autoincrement=True),
        *(Column(c.name, c.type_, nullable=True) for c in COLUMNS),
    )


@dataclass(frozen=True)
class GameRecord:
    """One finalized game. `outcome` is kept for callers but is not a column."""

    event: Optional[str] = None
    site: Optional[str] = None
    white: Optional[str] = None
    black: Optional[str] = None
    result: Optional[str] = None
    white_title: Optional[str] = None
    black_title: Optional[str] = None
    white_elo: Optional[int] = None
    black_elo: Optional[int] = None
    utc_date: Optional[date] = None
    utc_time: Optional[time] = None
    eco: Optional[str] = None
    opening: Optional[str] = None
    termination: Optional[str] = None
    time_control: Optional[str] = None
    movetext: str = ""
    parse_error: Optional[str] = None
    source: Optional[str] = None
    outcome: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return {c.name: getattr(self, c.attr) for c in COLUMNS}
