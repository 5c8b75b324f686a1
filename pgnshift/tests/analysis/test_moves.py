# ==============================================================================
# test_moves.py  –  Position hashing, moves_json, subsumption
# ==============================================================================

import json

import chess
import chess.polyglot
import pytest

from pgnshift.analysis.moves import (
    apply_san,
    extract_clean_mainline_sans,
    fen_epd,
    is_clean_mainline_movetext,
    is_subset,
    is_subset_fast,
    is_subset_with_parser,
    moves_hash,
    moves_json,
)
from pgnshift.utils.errors import IllegalMoveError

START_HASH = 0x463B96181691FC9C
AFTER_E4_HASH = 0x823C9B50FD114196


def board_after(*sans):
    board = chess.Board()
    for san in sans:
        board.push_san(san)
    return board


# ------------------------------------------------------------------------------
# moves_hash
# ------------------------------------------------------------------------------
def test_hash_matches_polyglot_reference_values():
    assert moves_hash("1. e4") == AFTER_E4_HASH
    assert moves_hash("1. e4 e5 2. Nf3") == chess.polyglot.zobrist_hash(
        board_after("e4", "e5", "Nf3")
    )


def test_hash_ignores_comments_variations_and_spacing():
    assert moves_hash("1.e4 e5") == moves_hash("1. e4 {c} (1. d4 d5) e5 $1")


def test_transpositions_hash_identically():
    assert moves_hash("1. Nf3 Nf6 2. Nc3 Nc6") == moves_hash("1. Nc3 Nc6 2. Nf3 Nf6")


def test_hash_stops_at_first_illegal_move():
    assert moves_hash("1. e4 e5 2. Kxe8 Nc6") == moves_hash("1. e4 e5")


def test_hash_with_no_applicable_move_is_start_position():
    assert moves_hash("not movetext") == START_HASH
    assert moves_hash("1. Ke2") == START_HASH


@pytest.mark.parametrize("movetext", [None, "", "  \n", "1. e4 {unterminated"])
def test_hash_null_cases(movetext):
    assert moves_hash(movetext) is None


# ------------------------------------------------------------------------------
# moves_json + helpers
# ------------------------------------------------------------------------------
def test_moves_json_two_plies():
    entries = json.loads(moves_json("1. e4 e5"))

    assert [(e["ply"], e["move"]) for e in entries] == [(1, "e4"), (2, "e5")]
    assert entries[0]["fen"] == (
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
    )
    assert entries[0]["epd"] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3"
    assert entries[1]["fen"] == board_after("e4", "e5").fen(en_passant="fen")


def test_moves_json_limits_and_stops():
    assert len(json.loads(moves_json("1. e4 e5 2. Nf3 Nc6", max_ply=3))) == 3
    assert len(json.loads(moves_json("1. e4 e5 2. Nf3 Nc6", max_ply=None))) == 4
    assert len(json.loads(moves_json("1. e4 e5 2. Ke3 Nc6"))) == 2
    assert len(json.loads(moves_json("1. e4 e5 {broken"))) == 2


@pytest.mark.parametrize(
    "movetext,max_ply", [(None, None), ("", None), ("1. e4", 0), ("1. e4", -1)]
)
def test_moves_json_empty_array(movetext, max_ply):
    assert moves_json(movetext, max_ply) == "[]"


def test_fen_epd():
    fen = board_after("e4").fen(en_passant="fen")
    assert fen_epd(fen) == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3"
    assert fen_epd("not a fen") is None
    assert fen_epd(None) is None


def test_apply_san_raises_on_illegal_move():
    board = chess.Board()
    with pytest.raises(IllegalMoveError):
        apply_san(board, "Ke2")
    assert board.move_stack == []


# ------------------------------------------------------------------------------
# is_subset
# ------------------------------------------------------------------------------
@pytest.mark.parametrize(
    "short,long,expected",
    [
        ("1. e4", "1. e4 e5", True),
        ("1. e4 e5", "1. e4", False),
        ("", "1. e4 e5", True),
        ("", "", True),
        ("1. e4", "", False),
        ("1. e4 e5 1-0", "1. e4 e5 2. Nf3", True),
        ("1. e4 {note} e5", "1. e4 e5 (2. d4) 2. Nf3", True),
        ("1. d4", "1. e4 e5", False),
        ("not movetext", "1. e4", False),
        ("1. e4", "1. e4 {broken", False),
    ],
)
def test_is_subset(short, long, expected):
    assert is_subset(short, long) is expected


def test_is_subset_null_propagates():
    assert is_subset(None, "1. e4") is None
    assert is_subset("1. e4", None) is None


@pytest.mark.parametrize(
    "movetext,clean",
    [
        ("1. e4 e5 2. Nf3", True),
        ("1. e4 e5 1-0", True),
        ("1.e4 e5", False),
        ("", True),
        ("1. e4 {c}", False),
        ("1. e4 e5?!", False),
        ("1. e4 (1. d4)", False),
        ("1-0 1. e4", False),
        ("1-0", False),
    ],
)
def test_clean_mainline_detector(movetext, clean):
    assert is_clean_mainline_movetext(movetext) is clean


def test_clean_extraction_rejects_illegal_moves():
    assert extract_clean_mainline_sans("1. e4 e5 2. Nf3") == ["e4", "e5", "Nf3"]
    assert extract_clean_mainline_sans("1. 0-0") is None
    assert extract_clean_mainline_sans("1. O-O") is None


DIFFERENTIAL_CORPUS = [
    "",
    "1. e4",
    "1. e4 e5",
    "1.e4 e5 2.Nf3",
    "1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 1-0",
    "1. e4 e5 *",
    "1. d4 d5 2. c4",
    "1. e4 e5 2. Ke3",
    "1. e4 e5 2. Ke2 Ke7 1/2-1/2",
    "1. Nf3 Nf6 2. g3 g6 3. Bg2 Bg7 4. O-O O-O",
    "1. e4 1... e5",
    "1-0",
    "1. e4 {c} e5",
    "garbage tokens",
]


@pytest.mark.parametrize("short", DIFFERENTIAL_CORPUS)
@pytest.mark.parametrize("long", DIFFERENTIAL_CORPUS)
def test_fast_path_agrees_with_parser(short, long):
    fast = is_subset_fast(short, long)
    if fast is not None:
        assert fast == is_subset_with_parser(short, long)
