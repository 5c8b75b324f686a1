# ==============================================================================
# movetext.py  –  Reduce raw movetext to its canonical mainline SAN sequence
# ------------------------------------------------------------------------------
#   parse_movetext_mainline("1. e4 {hi} (1. d4) e5?!")
#       → ParsedMovetext(sans=("e4", "e5"), outcome=None, parse_error=False)
#   normalize(...)  → "1. e4 e5"
#   normalize("1. e4 e5 1-0")  → "1. e4 e5 1-0"
#   ply_count(...)  → 2
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from pgnshift.ingestion.pgn_reader import MovetextVisitor, read_single_game
from pgnshift.utils.errors import PgnSyntaxError


@dataclass(frozen=True)
class ParsedMovetext:
    sans: Tuple[str, ...]
    outcome: Optional[str]
    parse_error: bool


class CanonicalizingVisitor(MovetextVisitor):
    """Keep SAN tokens and the outcome; drop everything else."""

    def __init__(self) -> None:
        self.sans: List[str] = []
        self.outcome_marker: Optional[str] = None

    def begin_tags(self):
        self.sans = []
        self.outcome_marker = None

    def san(self, token):
        self.sans.append(token)

    def outcome(self, marker):
        self.outcome_marker = marker


class PlyCountVisitor(MovetextVisitor):
    def __init__(self) -> None:
        self.count = 0

    def begin_tags(self):
        self.count = 0

    def san(self, token):
        self.count += 1


def parse_movetext_mainline(movetext: Optional[str]) -> Optional[ParsedMovetext]:
    """
    Canonicalize `movetext`.

    None stays None; blank input is an empty, error-free sequence. When the
    tokenizer halts on malformed syntax, the SANs read so far are returned
    with ``parse_error=True``.
    """
    if movetext is None:
        return None
    if not movetext.strip():
        return ParsedMovetext((), None, False)

    visitor = CanonicalizingVisitor()
    try:
        read_single_game(movetext, visitor)
        failed = False
    except PgnSyntaxError:
        failed = True

    return ParsedMovetext(tuple(visitor.sans), visitor.outcome_marker, failed)


def render_sans(sans: Iterable[str]) -> str:
    """Format SAN tokens as move-numbered text: ``1. e4 e5 2. Nf3``."""
    parts = []
    for ply, san in enumerate(sans):
        parts.append(f"{ply // 2 + 1}. {san}" if ply % 2 == 0 else san)
    return " ".join(parts)


def normalize(movetext: Optional[str]) -> Optional[str]:
    """
    Canonical move-numbered SAN text, trailing outcome marker included.

    "" when nothing parses.
    """
    parsed = parse_movetext_mainline(movetext)
    if parsed is None:
        return None
    text = render_sans(parsed.sans)
    if parsed.outcome:
        text = f"{text} {parsed.outcome}".lstrip()
    return text


def ply_count(movetext: Optional[str]) -> int:
    """Number of mainline SAN tokens; 0 for NULL, blank or unparseable input."""
    if movetext is None or not movetext.strip():
        return 0

    visitor = PlyCountVisitor()
    try:
        read_single_game(movetext, visitor)
    except PgnSyntaxError:
        return 0
    return visitor.count
