# ==============================================================================
# pgn_reader.py  –  Single-pass PGN tokenizer with a visitor interface
# ------------------------------------------------------------------------------
# `PgnReader.read_game(visitor)` walks one game and calls, in order:
#
#   begin_tags → tag* → begin_movetext
#       → (san | comment | partial_comment | nag | begin_variation | outcome)*
#       → end_game
#
# Only the mainline is dispatched; every variation is skipped after its
# `begin_variation` event. The outcome marker does not end the game: the
# reader keeps consuming up to the next tag line or end of stream, passing
# on comments only. A visitor hook may return `STOP` to end dispatch
# early; the reader still consumes the rest of the game so the stream stays
# positioned on the next game boundary.
#
# Malformed tag lines are recorded and raised as HeaderSyntaxError once the
# whole game has been read (no data lost); an unterminated comment raises
# MovetextSyntaxError at end of stream. `end_game` is not called in either
# case; the caller finalizes the partial state.
# ==============================================================================

from __future__ import annotations

import enum
import io
import re
from typing import Dict, List, Optional, TextIO

import chess

from pgnshift.utils.errors import HeaderSyntaxError, MovetextSyntaxError


class Flow(enum.Enum):
    STOP = "stop"


STOP = Flow.STOP

# ------------------------------------------------------------------------------
# Lexical tables
# ------------------------------------------------------------------------------

_TAG_RE = re.compile(
    r'\[\s*([A-Za-z0-9_][A-Za-z0-9_+#=:-]*)\s+"((?:[^"\\]|\\.)*)"\s*\]'
)
# Lenient single-tag form: allows unescaped quotes inside the value.
_LOOSE_TAG_RE = re.compile(r'^\[\s*([A-Za-z0-9_][A-Za-z0-9_+#=:-]*)\s+"(.*)"\s*\]$')
_TAG_ESCAPE_RE = re.compile(r'\\(["\\])')

_MOVE_NUMBER_RE = re.compile(r"^\d+\.*")
_GLYPH_SUFFIX_RE = re.compile(r"^(.*?)([!?]*)$")
_CASTLING_RE = re.compile(r"^(O-O-O|0-0-0|O-O|0-0)([+#]?)$")

_TOKEN_BREAKS = "{}();"

OUTCOMES: Dict[str, str] = {
    "1-0": "1-0",
    "0-1": "0-1",
    "1/2-1/2": "1/2-1/2",
    "½-½": "1/2-1/2",
    "*": "*",
}

GLYPH_NAGS: Dict[str, int] = {
    "!": 1,
    "?": 2,
    "!!": 3,
    "??": 4,
    "!?": 5,
    "?!": 6,
}


def canonical_san(token: str) -> Optional[str]:
    """
    Return the canonical SAN spelling of `token`, or None if it is not SAN.

    Castling is always spelled with the letter O; promotions always carry
    ``=`` and an upper-case piece. Check / mate suffixes are preserved.
    """
    castling = _CASTLING_RE.match(token)
    if castling:
        base = "O-O-O" if len(castling.group(1)) == 5 else "O-O"
        return base + castling.group(2)

    match = chess.SAN_REGEX.match(token)
    if not match:
        return None

    piece, from_file, from_rank, square, promotion = match.groups()
    parts = [piece or "", from_file or "", from_rank or ""]
    if "x" in token:
        parts.append("x")
    parts.append(square)
    if promotion:
        parts.append("=" + promotion[-1].upper())
    if token[-1] in "+#":
        parts.append(token[-1])
    return "".join(parts)


def _unescape(value: str) -> str:
    return _TAG_ESCAPE_RE.sub(r"\1", value)


# ------------------------------------------------------------------------------
# Visitor interface
# ------------------------------------------------------------------------------


class MovetextVisitor:
    """
    Base event sink. Every hook is a no-op; override what you need.

    A hook returning `STOP` ends dispatch for the current game.
    """

    def begin_tags(self) -> Optional[Flow]:
        return None

    def tag(self, key: str, value: str) -> Optional[Flow]:
        return None

    def begin_movetext(self) -> Optional[Flow]:
        return None

    def san(self, token: str) -> Optional[Flow]:
        return None

    def comment(self, text: str) -> Optional[Flow]:
        return None

    def partial_comment(self, text: str) -> Optional[Flow]:
        return None

    def nag(self, nag: int) -> Optional[Flow]:
        return None

    def begin_variation(self) -> Optional[Flow]:
        # The reader always skips the variation body.
        return None

    def outcome(self, marker: str) -> Optional[Flow]:
        return None

    def end_game(self) -> Optional[Flow]:
        return None


# ------------------------------------------------------------------------------
# Reader
# ------------------------------------------------------------------------------


class PgnReader:
    """Read games one at a time from a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._pending: List[str] = []
        self._visitor: MovetextVisitor = MovetextVisitor()
        self._stopped = False

    # ------------------------------------------------------------------
    # Line plumbing
    # ------------------------------------------------------------------

    def _next_line(self) -> Optional[str]:
        if self._pending:
            return self._pending.pop()
        line = self._stream.readline()
        return line if line else None

    def _push_back(self, line: str) -> None:
        self._pending.append(line)

    def _emit(self, event: str, *args) -> None:
        if self._stopped:
            return
        if getattr(self._visitor, event)(*args) is STOP:
            self._stopped = True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read_game(self, visitor: MovetextVisitor) -> bool:
        """
        Dispatch the next game to `visitor`.

        Returns
        -------
        bool
            True if a game was read, False at end of stream.

        Raises
        ------
        HeaderSyntaxError, MovetextSyntaxError
            After the game has been consumed; `end_game` is not called.
        """
        line = self._next_line()
        while line is not None and (not line.strip() or line.startswith("%")):
            line = self._next_line()
        if line is None:
            return False

        self._visitor = visitor
        self._stopped = False
        header_error: Optional[HeaderSyntaxError] = None

        self._emit("begin_tags")
        while line is not None:
            stripped = line.strip()
            if stripped.startswith("["):
                error = self._read_tag_line(stripped)
                if error is not None and header_error is None:
                    header_error = error
            elif stripped and not line.startswith("%"):
                break
            line = self._next_line()

        self._emit("begin_movetext")
        if line is not None:
            try:
                self._read_movetext(line)
            except MovetextSyntaxError:
                if not self._stopped:
                    raise

        if self._stopped:
            return True
        if header_error is not None:
            raise header_error

        self._emit("end_game")
        return True

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def _read_tag_line(self, text: str) -> Optional[HeaderSyntaxError]:
        tags = []
        pos = 0
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
                continue
            match = _TAG_RE.match(text, pos)
            if not match:
                tags = None
                break
            tags.append((match.group(1), _unescape(match.group(2))))
            pos = match.end()

        if tags is None:
            loose = _LOOSE_TAG_RE.match(text)
            if not loose:
                return HeaderSyntaxError(f"invalid tag line {text!r}")
            tags = [(loose.group(1), _unescape(loose.group(2)))]

        for key, value in tags:
            self._emit("tag", key, value)
        return None

    # ------------------------------------------------------------------
    # Movetext
    # ------------------------------------------------------------------

    def _read_movetext(self, line: Optional[str]) -> None:
        depth = 0
        comment: Optional[List[str]] = None
        first = True
        finished = False

        while line is not None:
            if not first and comment is None:
                if line.lstrip().startswith("["):
                    self._push_back(line)
                    return
                if line.startswith("%"):
                    line = self._next_line()
                    continue
            first = False

            i, n = 0, len(line)
            while i < n:
                if comment is not None:
                    close = line.find("}", i)
                    if close < 0:
                        comment.append(line[i:])
                        break
                    comment.append(line[i:close])
                    if depth == 0:
                        self._emit("comment", "".join(comment))
                    comment = None
                    i = close + 1
                    continue

                ch = line[i]
                if finished and ch == "[" and depth == 0:
                    self._push_back(line[i:])
                    return
                if ch.isspace() or ch == "}":
                    i += 1
                elif ch == "{":
                    comment = []
                    i += 1
                elif ch == ";":
                    break
                elif ch == "(":
                    depth += 1
                    if depth == 1 and not finished:
                        self._emit("begin_variation")
                    i += 1
                elif ch == ")":
                    depth = max(0, depth - 1)
                    i += 1
                else:
                    j = i
                    while j < n and not line[j].isspace() and line[j] not in _TOKEN_BREAKS:
                        j += 1
                    token, i = line[i:j], j
                    if depth or finished:
                        continue
                    if token in OUTCOMES:
                        self._emit("outcome", OUTCOMES[token])
                        finished = True
                        continue
                    self._dispatch_token(token)

            line = self._next_line()

        if comment is not None:
            if depth == 0:
                self._emit("partial_comment", "".join(comment))
            raise MovetextSyntaxError("unterminated comment")

    def _dispatch_token(self, token: str) -> None:
        if token.startswith("$"):
            if token[1:].isascii() and token[1:].isdigit():
                self._emit("nag", int(token[1:]))
            return

        if token in GLYPH_NAGS:
            self._emit("nag", GLYPH_NAGS[token])
            return

        body, glyphs = _GLYPH_SUFFIX_RE.match(token).groups()
        san = canonical_san(body) if body else None
        if san is not None:
            self._emit("san", san)
            if glyphs in GLYPH_NAGS:
                self._emit("nag", GLYPH_NAGS[glyphs])
            return

        number = _MOVE_NUMBER_RE.match(token)
        if number and number.end() < len(token):
            self._dispatch_token(token[number.end():])
        # anything else is junk and is skipped


def read_single_game(text: str, visitor: MovetextVisitor) -> bool:
    """Run `visitor` over the first game found in `text`."""
    return PgnReader(io.StringIO(text)).read_game(visitor)
