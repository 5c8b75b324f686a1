# ==============================================================================
# test_flag_subsumed_games.py  –  Move-lineage computation + persistence
#   Lineage logic runs on plain tuples; the controller runs against a
#   throwaway SQLite file with the logger patched out.
# ==============================================================================

from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy import MetaData, create_engine, select
from sqlalchemy.orm import sessionmaker

from pgnshift.cleaning.flag_subsumed_games import (
    build_lineage_table,
    compute_lineage,
    flag_subsumed_games,
)
from pgnshift.db.game_sink import GameTableSink
from pgnshift.db.schema import GameRecord, build_games_table
from pgnshift.utils.config import Settings

ROWS = [
    (1, "1. e4"),
    (2, "1. e4 e5"),
    (3, "1. e4 {same moves} e5"),
    (4, "1. d4"),
    (5, "1. e4 e5 {never closed"),
    (6, None),
]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'games.db'}",
        pgn_path=None,
        compression=None,
        max_workers=1,
        buffer_games=16,
        batch_size=100,
        table_name="pgn_games",
        lineage_table_name="pgn_game_lineage",
        echo_sql=False,
    )


# ------------------------------------------------------------------------------
# Pure lineage
# ------------------------------------------------------------------------------
def test_compute_lineage_links_prefixes():
    entries = {e.id_game: e for e in compute_lineage(ROWS)}

    assert entries[1].subsumed_by in (2, 3)
    assert entries[1].is_exact_duplicate is False
    assert entries[2].subsumed_by == 3
    assert entries[2].is_exact_duplicate is True
    assert entries[3].subsumed_by is None
    assert entries[4].subsumed_by is None


def test_compute_lineage_hash_and_ply_count():
    entries = {e.id_game: e for e in compute_lineage(ROWS)}

    assert entries[2].movetext_hash == entries[3].movetext_hash
    assert entries[2].ply_count == 2
    assert entries[4].ply_count == 1


def test_unparseable_games_are_never_linked():
    entries = {e.id_game: e for e in compute_lineage(ROWS)}

    broken = entries[5]
    assert broken.sans is None
    assert broken.movetext_hash is None
    assert broken.ply_count == 0
    assert broken.subsumed_by is None

    empty = entries[6]
    assert empty.movetext_hash is None
    assert empty.ply_count == 0


# ------------------------------------------------------------------------------
# Controller
# ------------------------------------------------------------------------------
@patch("pgnshift.cleaning.flag_subsumed_games.LOGGER")
def test_flag_subsumed_games_writes_lineage(mock_logger, settings):
    engine = create_engine(settings.database_url)
    metadata = MetaData()
    games = build_games_table(metadata, settings.table_name)
    metadata.create_all(engine)

    with sessionmaker(bind=engine)() as session:
        with GameTableSink(session, games) as sink:
            for _, movetext in ROWS[:4]:
                sink.add(GameRecord(movetext=movetext))

    summary = flag_subsumed_games(settings, engine)
    # second run replaces rather than appends
    summary = flag_subsumed_games(settings, engine)

    assert summary == {"games": 4, "subsumed": 2, "exact_duplicates": 1}

    lineage = build_lineage_table(MetaData(), settings.lineage_table_name)
    with engine.connect() as conn:
        rows = conn.execute(select(lineage).order_by(lineage.c.id_game)).mappings().all()

    assert [r["id_game"] for r in rows] == [1, 2, 3, 4]
    assert rows[1]["subsumed_by"] == 3
    assert rows[1]["is_exact_duplicate"] is True
    assert rows[0]["movetext_hash"].isdigit()
    assert all(isinstance(r["tm_computed"], datetime) for r in rows)
    assert mock_logger.info.called
