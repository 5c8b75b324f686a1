# ==============================================================================
# game_visitor.py  –  Assemble one GameRecord per PGN game
# ------------------------------------------------------------------------------
# Responsibilities:
#   • Keep the known header tags (first occurrence wins)
#   • Render mainline SAN + comments as numbered movetext ("1. e4 e5 2. Nf3")
#   • Convert Elo / date / time headers to typed values, collecting every
#     conversion failure in parse_error instead of dropping the row
#   • Finalize a partial record when the reader fails mid-game
#
# State machine:
#   IDLE → COLLECTING_HEADERS → COLLECTING_MOVES → IDLE
#   (any non-idle state) → FINALIZING_PARTIAL → IDLE
# ==============================================================================

from __future__ import annotations

import calendar
import enum
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from pgnshift.db.schema import GameRecord
from pgnshift.ingestion.pgn_reader import MovetextVisitor
from pgnshift.utils.errors import FieldConversionError

KNOWN_TAGS = frozenset(
    {
        "Event",
        "Site",
        "Source",
        "White",
        "Black",
        "Result",
        "WhiteTitle",
        "BlackTitle",
        "WhiteElo",
        "BlackElo",
        "UTCDate",
        "Date",
        "EventDate",
        "UTCTime",
        "Time",
        "ECO",
        "Opening",
        "Termination",
        "TimeControl",
    }
)

_UNKNOWN_MARKERS = {"?", "-"}
_OFFSET_RE = re.compile(r"^(\d{1,2}):(\d{2})$", re.ASCII)


class AssemblerState(enum.Enum):
    IDLE = "idle"
    COLLECTING_HEADERS = "collecting_headers"
    COLLECTING_MOVES = "collecting_moves"
    FINALIZING_PARTIAL = "finalizing_partial"


def stage_diagnostic(stage: str, path: str, game_index: int, cause: object) -> str:
    """Format the parse_error prefix for a game the reader could not finish."""
    return (
        f"Parser-stage error: stage={stage}; file='{path}'; "
        f"game_index={game_index}; error={cause}"
    )


# ------------------------------------------------------------------------------
# Conversion helpers
# ------------------------------------------------------------------------------


def _is_number(text: str) -> bool:
    # int() rejects superscripts and other non-ASCII digits
    return text.isascii() and text.isdecimal()


def parse_elo(raw: Optional[str], label: str) -> Optional[int]:
    """
    Parse a rating header.

    Handles:
      • Non-negative integers ("2400")
      • Empty strings, "?", "-" → None (unknown, not an error)
    """
    if raw is None:
        return None
    s = raw.strip()
    if not s or s in _UNKNOWN_MARKERS:
        return None
    if not _is_number(s):
        raise FieldConversionError(label, s, "invalid digit found in string")
    return int(s)


def date_completeness(raw: str) -> int:
    """0 = unusable / unknown year, +1 each for known year, month, day."""
    parts = raw.strip().replace(".", "-").split("-")
    if len(parts) != 3 or not _is_number(parts[0]):
        return 0
    return 1 + sum(1 for p in parts[1:] if _is_number(p))


def parse_pgn_date(raw: Optional[str], label: str) -> Optional[date]:
    """
    Parse a PGN date (YYYY.MM.DD, dashes also accepted).

    Unknown year → None without error. Unknown month / day → 01.
    A day past the end of its month is clamped to the last day.
    """
    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None

    parts = s.replace(".", "-").split("-")
    if len(parts) != 3:
        raise FieldConversionError(label, s, "premature end of input")
    if "?" in parts[0]:
        return None

    year_s = parts[0]
    month_s = "01" if "?" in parts[1] else parts[1]
    day_s = "01" if "?" in parts[2] else parts[2]
    if not (_is_number(year_s) and _is_number(month_s) and _is_number(day_s)):
        raise FieldConversionError(label, s, "invalid digit found in string")

    year, month, day = int(year_s), int(month_s), int(day_s)
    if not (1 <= year <= 9999 and 1 <= month <= 12 and day >= 1):
        raise FieldConversionError(label, s, "input is out of range")

    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _parse_offset(raw: str) -> Optional[int]:
    match = _OFFSET_RE.match(raw.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 3600 + minutes * 60


def parse_pgn_time(raw: Optional[str], label: str) -> Optional[time]:
    """
    Parse HH:MM:SS with an optional ``Z`` or ``±HH:MM`` suffix.

    Returns a tz-aware `datetime.time`; a time containing "?" is unknown.
    """
    if raw is None:
        return None
    s = raw.strip()
    if not s or "?" in s:
        return None

    sign = 1
    if s.endswith("Z"):
        body, offset = s[:-1], 0
    elif "+" in s or "-" in s:
        sep = "+" if "+" in s else "-"
        sign = 1 if sep == "+" else -1
        body, off = s.split(sep, 1)
        offset = _parse_offset(off)
        if offset is None:
            raise FieldConversionError(label, s, "invalid timezone offset")
    else:
        body, offset = s, 0

    try:
        parsed = datetime.strptime(body.strip(), "%H:%M:%S").time()
    except ValueError as exc:
        raise FieldConversionError(label, s, str(exc)) from exc

    return parsed.replace(tzinfo=timezone(timedelta(seconds=sign * offset)))


def _rank_date_candidates(headers: Dict[str, str]) -> List[Tuple[str, str]]:
    ranked = []
    for precedence, (key, label) in enumerate(
        (
            ("UTCDate", "UTCDate"),
            ("Date", "UTCDate (from Date)"),
            ("EventDate", "UTCDate (from EventDate)"),
        )
    ):
        raw = headers.get(key)
        if raw is None or not raw.strip():
            continue
        ranked.append((-date_completeness(raw), precedence, raw, label))

    ranked.sort()
    return [(raw, label) for _, _, raw, label in ranked]


# ------------------------------------------------------------------------------
# Visitor
# ------------------------------------------------------------------------------


class GameVisitor(MovetextVisitor):
    """Turns reader events into `GameRecord`s; read `record` after each game."""

    def __init__(self) -> None:
        self.state = AssemblerState.IDLE
        self.record: Optional[GameRecord] = None
        self._headers: Dict[str, str] = {}
        self._movetext: List[str] = []
        self._move_count = 0
        self._outcome: Optional[str] = None

    # reader events ------------------------------------------------------

    def begin_tags(self):
        self._headers = {}
        self._movetext = []
        self._move_count = 0
        self._outcome = None
        self.record = None
        self.state = AssemblerState.COLLECTING_HEADERS

    def tag(self, key, value):
        if key in KNOWN_TAGS:
            self._headers.setdefault(key, value)

    def begin_movetext(self):
        self.state = AssemblerState.COLLECTING_MOVES

    def san(self, token):
        if self._move_count % 2 == 0:
            self._movetext.append(f"{self._move_count // 2 + 1}. {token}")
        else:
            self._movetext.append(token)
        self._move_count += 1

    def comment(self, text):
        self._movetext.append("{ " + " ".join(text.split()) + " }")

    def outcome(self, marker):
        self._outcome = marker

    def end_game(self):
        self.record = self._build(None)
        self.state = AssemblerState.IDLE

    # error path ---------------------------------------------------------

    def finalize_partial(self, diagnostic: str) -> GameRecord:
        """Build a record from whatever was collected, tagged with `diagnostic`."""
        self.state = AssemblerState.FINALIZING_PARTIAL
        self.record = self._build(diagnostic)
        self.state = AssemblerState.IDLE
        return self.record

    # building -----------------------------------------------------------

    def _build(self, diagnostic: Optional[str]) -> GameRecord:
        errors: List[str] = [diagnostic] if diagnostic else []
        headers = self._headers

        def convert(parser, raw, label):
            try:
                return parser(raw, label)
            except FieldConversionError as exc:
                errors.append(str(exc))
                return None

        white_elo = convert(parse_elo, headers.get("WhiteElo"), "WhiteElo")
        black_elo = convert(parse_elo, headers.get("BlackElo"), "BlackElo")

        utc_date = None
        for raw, label in _rank_date_candidates(headers):
            utc_date = convert(parse_pgn_date, raw, label)
            if utc_date is not None:
                break

        utc_time = None
        for key, label in (("UTCTime", "UTCTime"), ("Time", "UTCTime (from Time)")):
            if key in headers:
                utc_time = convert(parse_pgn_time, headers[key], label)
                if utc_time is not None:
                    break

        result = headers["Result"] if "Result" in headers else self._outcome

        return GameRecord(
            event=headers.get("Event"),
            site=headers.get("Site"),
            white=headers.get("White"),
            black=headers.get("Black"),
            result=result,
            white_title=headers.get("WhiteTitle"),
            black_title=headers.get("BlackTitle"),
            white_elo=white_elo,
            black_elo=black_elo,
            utc_date=utc_date,
            utc_time=utc_time,
            eco=headers.get("ECO"),
            opening=headers.get("Opening"),
            termination=headers.get("Termination"),
            time_control=headers.get("TimeControl"),
            movetext=" ".join(self._movetext).strip(),
            parse_error="; ".join(errors) if errors else None,
            source=headers.get("Source"),
            outcome=self._outcome,
        )
