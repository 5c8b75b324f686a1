# ==============================================================================
# moves.py  –  Move application: position hashing, prefix checks, FEN walks
# ------------------------------------------------------------------------------
# Public helpers:
#   • moves_hash(movetext)        → polyglot Zobrist hash of the final position
#   • is_subset(short, long)      → is `short`'s mainline a prefix of `long`'s
#   • moves_json(movetext, n)     → JSON array of {ply, move, fen, epd}
#   • fen_epd(fen)                → first four FEN fields
#
# Moves are applied with python-chess. The first SAN that does not resolve on
# the board ends the walk; the last legal position is kept.
# ==============================================================================

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import chess
import chess.polyglot

from pgnshift.analysis.movetext import parse_movetext_mainline
from pgnshift.ingestion.pgn_reader import (
    STOP,
    MovetextVisitor,
    canonical_san,
    read_single_game,
)
from pgnshift.utils.errors import IllegalMoveError, PgnSyntaxError
from pgnshift.utils.logging_utils import setup_logger

LOGGER = setup_logger("moves")

_RESULT_MARKERS = {"1-0", "0-1", "1/2-1/2", "*"}
_UNCERTAIN_CHARS = set("{}()$!?;")
_CASTLING_TOKENS = {"O-O", "O-O+", "O-O#", "O-O-O", "O-O-O+", "O-O-O#"}
_SAN_FIRST_CHARS = set("KQRBNabcdefgh")
_SAN_EXTRA_CHARS = set("x+#=-")


# ------------------------------------------------------------------------------
# Board helpers
# ------------------------------------------------------------------------------


def apply_san(board: chess.Board, san: str) -> chess.Move:
    """Push `san` onto `board`; raise IllegalMoveError if it does not resolve."""
    try:
        move = board.parse_san(san)
    except ValueError as exc:
        raise IllegalMoveError(san, board.fen()) from exc
    board.push(move)
    return move


def _epd_fields(fen: str) -> str:
    return " ".join(fen.split()[:4])


def fen_epd(fen: Optional[str]) -> Optional[str]:
    """Return board, side, castling and en-passant fields of a valid FEN."""
    if fen is None or not fen.strip():
        return None
    try:
        board = chess.Board(fen.strip())
    except ValueError:
        return None
    return _epd_fields(board.fen(en_passant="fen"))


# ------------------------------------------------------------------------------
# Visitors
# ------------------------------------------------------------------------------


class ZobristHashVisitor(MovetextVisitor):
    def __init__(self) -> None:
        self.board = chess.Board()
        self.hash = chess.polyglot.zobrist_hash(self.board)

    def begin_tags(self):
        self.board = chess.Board()
        self.hash = chess.polyglot.zobrist_hash(self.board)

    def san(self, token):
        try:
            apply_san(self.board, token)
        except IllegalMoveError:
            return STOP
        self.hash = chess.polyglot.zobrist_hash(self.board)


class MovesJsonVisitor(MovetextVisitor):
    def __init__(self, max_ply: Optional[int] = None) -> None:
        self.max_ply = max_ply
        self.board = chess.Board()
        self.entries: List[Dict[str, Any]] = []

    def san(self, token):
        if self.max_ply is not None and len(self.entries) >= self.max_ply:
            return STOP
        try:
            apply_san(self.board, token)
        except IllegalMoveError:
            return STOP

        fen = self.board.fen(en_passant="fen")
        self.entries.append(
            {
                "ply": len(self.entries) + 1,
                "move": token,
                "fen": fen,
                "epd": _epd_fields(fen),
            }
        )


# ------------------------------------------------------------------------------
# Hashing + JSON
# ------------------------------------------------------------------------------


def moves_hash(movetext: Optional[str]) -> Optional[int]:
    """
    Unsigned 64-bit Zobrist hash of the position after the mainline.

    Returns None for NULL / blank input and when the tokenizer fails.
    Non-empty movetext with no applicable move hashes the start position.
    """
    if movetext is None or not movetext.strip():
        return None

    visitor = ZobristHashVisitor()
    try:
        read_single_game(movetext, visitor)
    except PgnSyntaxError as exc:
        LOGGER.debug("moves_hash: tokenizer failed (%s)", exc)
        return None
    return visitor.hash


def moves_json(movetext: Optional[str], max_ply: Optional[int] = None) -> str:
    """JSON array with one {ply, move, fen, epd} object per applied move."""
    if movetext is None or not movetext.strip():
        return "[]"
    if max_ply is not None and max_ply <= 0:
        return "[]"

    visitor = MovesJsonVisitor(max_ply)
    try:
        read_single_game(movetext, visitor)
    except PgnSyntaxError as exc:
        # keep the prefix applied before the failure
        LOGGER.debug("moves_json: tokenizer failed (%s)", exc)
    return json.dumps(visitor.entries, separators=(",", ":"))


# ------------------------------------------------------------------------------
# Subsumption
# ------------------------------------------------------------------------------


def _is_move_number_token(token: str) -> bool:
    digits, dot, rest = token.partition(".")
    return bool(digits) and digits.isdigit() and dot == "." and rest in ("", "..")


def _looks_like_san_token(token: str) -> bool:
    if not token or not token.isascii() or "." in token:
        return False
    if token in _CASTLING_TOKENS:
        return True
    if token[0] not in _SAN_FIRST_CHARS:
        return False
    return all(c.isalnum() or c in _SAN_EXTRA_CHARS for c in token)


def is_clean_mainline_movetext(movetext: str) -> bool:
    """
    True for blank input, or plain numbered SAN with at most one trailing
    result and at least one move; nothing the full parser would treat
    differently.
    """
    trimmed = movetext.strip()
    if not trimmed:
        return True
    if any(c in _UNCERTAIN_CHARS for c in trimmed):
        return False

    saw_result = saw_san = False
    for token in trimmed.split():
        if saw_result:
            return False
        if _is_move_number_token(token):
            continue
        if token in _RESULT_MARKERS:
            saw_result = True
            continue
        if not _looks_like_san_token(token):
            return False
        saw_san = True
    return saw_san


def extract_clean_mainline_sans(movetext: str) -> Optional[List[str]]:
    """Canonical SANs of clean movetext, or None if any move fails to apply."""
    if not movetext.strip():
        return []

    board = chess.Board()
    sans: List[str] = []
    saw_result = False
    for token in movetext.split():
        if saw_result:
            return None
        if _is_move_number_token(token):
            continue
        if token in _RESULT_MARKERS:
            saw_result = True
            continue
        san = canonical_san(token) if _looks_like_san_token(token) else None
        if san is None:
            return None
        try:
            apply_san(board, san)
        except IllegalMoveError:
            return None
        sans.append(san)
    return sans


def is_prefix(short: List[str], long: List[str]) -> bool:
    return len(short) <= len(long) and list(long[: len(short)]) == list(short)


def is_subset_fast(short: str, long: str) -> Optional[bool]:
    """Prefix check on clean mainlines; None when the full parser is needed."""
    if not (is_clean_mainline_movetext(short) and is_clean_mainline_movetext(long)):
        return None
    short_sans = extract_clean_mainline_sans(short)
    long_sans = extract_clean_mainline_sans(long)
    if short_sans is None or long_sans is None:
        return None
    return is_prefix(short_sans, long_sans)


def _failed_to_parse(text: str, parsed) -> bool:
    return parsed.parse_error or (
        bool(text.strip()) and not parsed.sans and parsed.outcome is None
    )


def is_subset_with_parser(short: str, long: str) -> bool:
    short_parsed = parse_movetext_mainline(short)
    long_parsed = parse_movetext_mainline(long)
    if _failed_to_parse(short, short_parsed) or _failed_to_parse(long, long_parsed):
        return False
    return is_prefix(list(short_parsed.sans), list(long_parsed.sans))


def is_subset(short: Optional[str], long: Optional[str]) -> Optional[bool]:
    """
    Whether the mainline of `short` is a prefix of the mainline of `long`.

    Returns
    -------
    Optional[bool]
        None if either side is NULL; False if either side fails to parse.
    """
    if short is None or long is None:
        return None

    fast = is_subset_fast(short, long)
    if fast is not None:
        return fast
    return is_subset_with_parser(short, long)
