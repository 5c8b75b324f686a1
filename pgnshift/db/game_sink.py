# ==============================================================================
# game_sink.py  –  Batched insert helper for pgn_games
# ------------------------------------------------------------------------------
# Responsibilities:
#   • Turn a finalized GameRecord into a dictionary ready for SQLAlchemy
#   • Replace interior NUL characters (rejected by Postgres text columns)
#     and note every replacement in parse_error
#   • Buffer rows and insert them in batches inside one transaction each
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import Table
from sqlalchemy.orm import Session

from pgnshift.db.schema import TEXT_COLUMNS, GameRecord
from pgnshift.utils.logging_utils import setup_logger

LOGGER = setup_logger("game_sink")

# ------------------------------------------------------------------------------
# Row helpers
# ------------------------------------------------------------------------------


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}; {note}" if existing else note


def build_game_row(record: GameRecord) -> Dict[str, Any]:
    """
    Normalise a GameRecord into a DB-ready column → value mapping.

    Every text column containing ``\\0`` has it replaced by a space, and a
    ``Sanitized interior NUL in <column>`` note is appended to parse_error.
    """
    row = record.to_row()
    notes: List[str] = []

    for name in TEXT_COLUMNS:
        if name == "parse_error":
            continue
        value = row[name]
        if isinstance(value, str) and "\0" in value:
            row[name] = value.replace("\0", " ")
            notes.append(f"Sanitized interior NUL in {name}")

    parse_error = row["parse_error"]
    if isinstance(parse_error, str) and "\0" in parse_error:
        parse_error = parse_error.replace("\0", " ")
    for note in notes:
        parse_error = _append_note(parse_error, note)
    row["parse_error"] = parse_error

    return row


# ------------------------------------------------------------------------------
# Sink
# ------------------------------------------------------------------------------


class GameTableSink:
    """
    Buffer rows and flush them to `table` in batches.

    Use as a context manager so the final partial batch is always written.
    """

    def __init__(self, session: Session, table: Table, batch_size: int = 500) -> None:
        self.session = session
        self.table = table
        self.batch_size = max(1, batch_size)
        self.inserted = 0
        self._pending: List[Dict[str, Any]] = []

    def add(self, record: GameRecord) -> None:
        self._pending.append(build_game_row(record))
        if len(self._pending) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """Write buffered rows; returns how many were inserted."""
        if not self._pending:
            return 0

        rows, self._pending = self._pending, []
        with self.session.begin():
            self.session.execute(self.table.insert(), rows)

        self.inserted += len(rows)
        LOGGER.debug("Inserted batch of %d row(s) into %s", len(rows), self.table.name)
        return len(rows)

    def __enter__(self) -> "GameTableSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.flush()
