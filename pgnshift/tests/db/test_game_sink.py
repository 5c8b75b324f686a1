# ==============================================================================
# test_game_sink.py  –  Row building + batched inserts against SQLite
# ==============================================================================

from datetime import date, time, timezone

import pytest
from sqlalchemy import MetaData, create_engine, func, select
from sqlalchemy.orm import sessionmaker

from pgnshift.db.game_sink import GameTableSink, build_game_row
from pgnshift.db.schema import COLUMNS, GameRecord, build_games_table, column_names


@pytest.fixture
def games_db():
    engine = create_engine("sqlite://")
    metadata = MetaData()
    table = build_games_table(metadata)
    metadata.create_all(engine)
    return engine, table


def test_column_layout_is_fixed():
    assert column_names() == [
        "Event", "Site", "White", "Black", "Result", "WhiteTitle", "BlackTitle",
        "WhiteElo", "BlackElo", "UTCDate", "UTCTime", "ECO", "Opening",
        "Termination", "TimeControl", "movetext", "parse_error", "Source",
    ]
    assert len(COLUMNS) == 18


def test_row_excludes_outcome():
    row = build_game_row(GameRecord(white="A", movetext="1. e4", outcome="1-0"))
    assert set(row) == set(column_names())
    assert row["White"] == "A"
    assert row["parse_error"] is None


def test_interior_nul_is_sanitized_and_noted():
    record = GameRecord(
        white="Ali\0ce",
        opening="Sicilian\0",
        parse_error="Conversion error: WhiteElo='x' (invalid digit found in string)",
    )

    row = build_game_row(record)

    assert row["White"] == "Ali ce"
    assert row["Opening"] == "Sicilian "
    assert row["parse_error"] == (
        "Conversion error: WhiteElo='x' (invalid digit found in string); "
        "Sanitized interior NUL in White; Sanitized interior NUL in Opening"
    )


def test_sink_inserts_in_batches(games_db):
    engine, table = games_db
    session_factory = sessionmaker(bind=engine)

    with session_factory() as session:
        with GameTableSink(session, table, batch_size=2) as sink:
            for i in range(5):
                sink.add(
                    GameRecord(
                        event=f"E{i}",
                        white_elo=2000 + i,
                        utc_date=date(2024, 1, i + 1),
                        utc_time=time(12, 0, i, tzinfo=timezone.utc),
                        movetext="1. e4 e5",
                    )
                )
            assert sink.inserted == 4

    assert sink.inserted == 5
    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(table)).scalar() == 5
        row = conn.execute(select(table).where(table.c.Event == "E3")).mappings().one()
    assert row["WhiteElo"] == 2003
    assert row["UTCDate"] == date(2024, 1, 4)
    assert row["movetext"] == "1. e4 e5"


def test_sink_does_not_flush_after_error(games_db):
    engine, table = games_db
    session_factory = sessionmaker(bind=engine)

    with session_factory() as session:
        with pytest.raises(RuntimeError):
            with GameTableSink(session, table, batch_size=10) as sink:
                sink.add(GameRecord(event="never written"))
                raise RuntimeError("consumer failed")

    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(table)).scalar() == 0
