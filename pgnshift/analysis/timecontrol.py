# ==============================================================================
# timecontrol.py  –  Parse, normalize and categorize PGN TimeControl values
# ------------------------------------------------------------------------------
# Strict PGN forms are accepted as-is:
#     "?"  "-"  "*60"  "180+2"  "40/5400+30:1800+30"
# Common human spellings are inferred and flagged (`inferred=True`) with a
# warning code per rewrite:
#     "3+2" → 180+2        "G/45" → 2700        "90'+30''" → 5400+30
#     "90 min for 40 moves + 30 min + 30 sec per move" → 40/5400+30:1800+30
#
# Every period is stored in seconds. Values that overflow an unsigned 32-bit
# count are reported with an `inference_arithmetic_overflow` warning and no
# normalized form.
# ==============================================================================

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

U32_MAX = 2**32 - 1
OVERFLOW_WARNING = "inference_arithmetic_overflow"

CATEGORY_BANDS: Tuple[Tuple[int, str], ...] = (
    (30, "ultra-bullet"),
    (180, "bullet"),
    (480, "blitz"),
    (1500, "rapid"),
)


class Mode(enum.Enum):
    UNKNOWN = "unknown"
    UNLIMITED = "unlimited"
    SANDCLOCK = "sandclock"
    NORMAL = "normal"


@dataclass
class Period:
    base_seconds: int
    moves: Optional[int] = None
    increment_seconds: Optional[int] = None

    def format(self) -> str:
        base = (
            f"{self.moves}/{self.base_seconds}"
            if self.moves is not None
            else str(self.base_seconds)
        )
        if self.increment_seconds is None:
            return base
        return f"{base}+{self.increment_seconds}"


@dataclass
class ParsedTimeControl:
    raw: str
    normalized: Optional[str]
    periods: List[Period] = field(default_factory=list)
    mode: Mode = Mode.UNKNOWN
    warnings: List[str] = field(default_factory=list)
    inferred: bool = False
    overflow: bool = False


# ------------------------------------------------------------------------------
# Numeric helpers
# ------------------------------------------------------------------------------


def _u32(text: Optional[str]) -> Optional[int]:
    if text is None or not text.isdigit() or not text.isascii():
        return None
    value = int(text)
    return value if value <= U32_MAX else None


def _checked(value: int) -> Optional[int]:
    return value if value <= U32_MAX else None


def _minutes(minutes: int) -> Optional[int]:
    return _checked(minutes * 60)


def _join_periods(periods: List[Period]) -> str:
    return ":".join(p.format() for p in periods)


def _inferred(
    raw: str, warnings: List[str], periods: List[Period], overflow: bool
) -> ParsedTimeControl:
    if overflow:
        warnings.append(OVERFLOW_WARNING)
        return ParsedTimeControl(
            raw, None, [], Mode.NORMAL, list(warnings), inferred=True, overflow=True
        )
    return ParsedTimeControl(
        raw, _join_periods(periods), periods, Mode.NORMAL, list(warnings), inferred=True
    )


def _minute_periods(*specs: Tuple[Optional[int], int, Optional[int]]):
    """(moves, minutes, increment) tuples → (periods, overflow)."""
    periods, overflow = [], False
    for moves, minutes, increment in specs:
        seconds = _minutes(minutes)
        overflow = overflow or seconds is None
        periods.append(Period(seconds or 0, moves, increment))
    return periods, overflow


# ------------------------------------------------------------------------------
# Strict grammar
# ------------------------------------------------------------------------------


def parse_stage(text: str) -> Optional[Period]:
    """One `[moves/]seconds[+increment]` stage, or None."""
    if "+" in text:
        parts = text.split("+")
        if len(parts) != 2:
            return None
        base_part, inc_part = parts
    else:
        base_part, inc_part = text, None

    moves = None
    if "/" in base_part:
        parts = base_part.split("/")
        if len(parts) != 2:
            return None
        moves = _u32(parts[0])
        if moves is None:
            return None
        base_part = parts[1]

    base = _u32(base_part)
    if base is None:
        return None
    increment = None
    if inc_part is not None:
        increment = _u32(inc_part)
        if increment is None:
            return None
    return Period(base, moves, increment)


def _looks_like_minute_shorthand(period: Period) -> bool:
    if period.moves is not None:
        return False
    if period.increment_seconds is None:
        return period.base_seconds < 60
    inc = period.increment_seconds
    return (period.base_seconds < 60 and inc <= 60) or (
        period.base_seconds in (75, 90) and inc == 30
    )


def _is_strict_candidate(text: str) -> bool:
    if text in ("?", "-"):
        return True
    if text.startswith("*") and _u32(text[1:]) is not None:
        return True
    if ":" in text and all(parse_stage(s) for s in text.split(":")):
        return True
    return parse_stage(text) is not None


def _try_strict(text: str, warnings: List[str]) -> Optional[ParsedTimeControl]:
    if text == "?":
        return ParsedTimeControl(text, "?", [], Mode.UNKNOWN, list(warnings))
    if text == "-":
        return ParsedTimeControl(text, "-", [], Mode.UNLIMITED, list(warnings))

    if text.startswith("*"):
        seconds = _u32(text[1:])
        if seconds is not None:
            return ParsedTimeControl(
                text, f"*{seconds}", [Period(seconds)], Mode.SANDCLOCK, list(warnings)
            )

    stages = text.split(":")
    if len(stages) > 1:
        periods = [parse_stage(s) for s in stages]
        if all(periods):
            return ParsedTimeControl(
                text, _join_periods(periods), periods, Mode.NORMAL, list(warnings)
            )

    period = parse_stage(text)
    if period is not None and not _looks_like_minute_shorthand(period):
        return ParsedTimeControl(
            text, period.format(), [period], Mode.NORMAL, list(warnings)
        )
    return None


# ------------------------------------------------------------------------------
# Preprocessing
# ------------------------------------------------------------------------------

_OPERATOR_SPACING = [
    (" + ", "+"), ("+ ", "+"), (" +", "+"),
    (" - ", "-"), ("- ", "-"), (" -", "-"),
    (" / ", "/"), ("/ ", "/"), (" /", "/"),
    (" : ", ":"), (": ", ":"), (" :", ":"),
]  # fmt: skip


def _replace_all(text: str, pairs) -> str:
    for old, new in pairs:
        text = text.replace(old, new)
    return text


def _strip_outer_quotes(text: str) -> Tuple[str, bool]:
    s, stripped = text.strip(), False
    while len(s) >= 2 and s[0] in "'\"" and s[-1] in "'\"":
        s, stripped = s[1:-1].strip(), True
    return s, stripped


def _has_ambiguous_quote_residue(text: str) -> bool:
    if '"' in text:
        return True
    idx = 0
    while idx < len(text):
        if text[idx] != "'":
            idx += 1
            continue
        if idx == 0 or not text[idx - 1].isdigit():
            return True
        while idx < len(text) and text[idx] == "'":
            idx += 1
    return False


def _preprocess(raw: str) -> Tuple[str, List[str], bool]:
    warnings: List[str] = []

    s = raw.strip()
    if s != raw:
        warnings.append("trimmed")

    s, stripped = _strip_outer_quotes(s)
    if stripped:
        warnings.append("stripped_quotes")

    ambiguous = _has_ambiguous_quote_residue(s)
    if ambiguous:
        warnings.append("ambiguous_quote_residue")

    spaced = _replace_all(s, _OPERATOR_SPACING)
    if spaced != s:
        warnings.append("normalized_operator_whitespace")
    s = spaced

    mapped = s.replace("|", "+").replace("_", "+")
    if mapped != s:
        warnings.append("mapped_separator")
        respaced = _replace_all(mapped, _OPERATOR_SPACING[:3])
        if respaced != mapped:
            warnings.append("normalized_operator_whitespace")
        mapped = respaced
    s = mapped

    if s.endswith("'") and not s.endswith("''"):
        candidate = s.rstrip("'")
        if _is_strict_candidate(candidate):
            s = candidate
            warnings.append("stripped_trailing_apostrophe")

    return s, warnings, ambiguous


# ------------------------------------------------------------------------------
# Inference patterns
# ------------------------------------------------------------------------------

_PER_MOVE = r"(?:per\s*move|/move|/mv|/m)"
_FROM_MOVE = r"(?:from\s*move\s*\w+)"
_INC_WORDING = r"(?:increment|inc|incr|added|additional)"
_MIN_UNIT = r"(?:minutes?|mins?|mns?|min(?:\.|utes?)?|m\.?|m)"
_SEC_UNIT = r"(?:seconds?|secs?|sec\.?|s\.?|sek|ss|secss)"
_LETTERS = r"[^\W\d_]"

_TRAILING_QUALIFIER_RE = re.compile(rf"^(.+?)\s+({_LETTERS}+)$")
_G_PREFIX_NUMERIC_RE = re.compile(
    rf"^(\d+)\s*(?:\+\s*(\d+)\s*(?:inc|{_SEC_UNIT}\s*(?:(?:added\s+)?{_PER_MOVE}))?)?$"
)
_APOSTROPHE_PER_MOVE_RE = re.compile(
    r"^\s*(\d+)\s*'\s*\+\s*(\d+)\s*''\s*/\s*(?:m|mv|move)\b.*$", re.I
)
_COMPACT_MIN_SEC_INC_RE = re.compile(
    rf"^\s*(?:(?:{_LETTERS}|\s)+:\s*)?(\d+)\s*{_MIN_UNIT}?\s*\+\s*(\d+)\s*{_SEC_UNIT}\b"
    rf"(?:\s*{_INC_WORDING})?(?:\s*(?:{_FROM_MOVE}|{_PER_MOVE}))?\s*$",
    re.I,
)
_CLOCK_STYLE_INC_RE = re.compile(
    rf"^\s*(\d+)\s*:\s*([0-5]?\d)(?:\.\d+)?\s*\+\s*(\d+)\s*{_SEC_UNIT}\b"
    rf"(?:\s*{_INC_WORDING})?(?:\s*(?:{_FROM_MOVE}|{_PER_MOVE}))?\s*$",
    re.I,
)
_FIDE_APOSTROPHE_WITH_MOVE_RE = re.compile(
    r"^\s*(\d+)\s*'\s*/\s*(\d+)\s*(?:m|moves?)?\s*(?:\+|&)\s*(\d+)\s*'\s*/\s*(?:g|end)"
    r"\s*(?:\+|&)\s*(\d+)\s*(?:''?)?\s*/\s*(?:m|mv|move)\b.*$",
    re.I,
)
_FIDE_APOSTROPHE_G_COMPACT_RE = re.compile(
    r"^\s*(\d+)\s*'\s*/\s*(\d+)\s*(?:m|moves?)?\s*(?:\+|&)\s*(\d+)\s*'\s*/\s*(?:g|end)"
    r"\s*(?:\+|&)\s*(\d+)\s*''\s*$",
    re.I,
)
_FIDE_APOSTROPHE_BONUS_RE = re.compile(
    r"^\s*(\d+)\s*'\s*/\s*(\d+)\s*(?:m|moves?)\s*(?:\+|&)\s*(\d+)\s*'\s*(?:\+|&)"
    r"\s*(\d+)\s*''\s*bonus(?:\s*increment)?\s*$",
    re.I,
)
_FIDE_ADDITIONAL_RE = re.compile(
    rf"^\s*(\d+)\s*{_MIN_UNIT}\s*\+\s*(\d+)\s*{_SEC_UNIT}\s*additional\s*\+\s*(\d+)"
    rf"\s*{_MIN_UNIT}\s*after\s*move\s*40\s*$",
    re.I,
)
_FIDE_TRIPLE_PLUS_RE = re.compile(
    rf"^\s*(\d+)\s*\+\s*(\d+)\s*\+\s*(\d+)\s*(?:{_SEC_UNIT}\s*{_PER_MOVE}|after\s*40\s*moves?)\s*$",
    re.I,
)
_TWO_STAGE_SLASH_RE = re.compile(r"^\s*(\d+)\s*\+\s*(\d+)\s*/\s*(\d+)\s*\+\s*(\d+)\s*$")

_FREETEXT_FIDE_STAGE_RE = re.compile(
    rf"(\d+)\s*{_MIN_UNIT}\s*(?:for\s*(\d+)\s*(?:moves?|mv|mvs?)|/\s*(\d+))"
)
_FREETEXT_FIDE_REST_RE = re.compile(
    rf"(?:\+|,|then\s+)\s*(\d+)\s*{_MIN_UNIT}\s*(?:for\s*(?:the\s*)?rest|rest)?"
)
_FREETEXT_MINUTE_RE = re.compile(rf"(\d+)\s*{_MIN_UNIT}\b")
_FREETEXT_SECOND_RE = re.compile(rf"(\d+)\s*{_SEC_UNIT}\b")
_FREETEXT_INC_RE = re.compile(rf"(\d+)\s*{_SEC_UNIT}\s*(?:(?:added\s+)?{_PER_MOVE})")


def _groups_u32(match: re.Match, *indexes: int) -> Optional[List[int]]:
    values = [_u32(match.group(i)) for i in indexes]
    return None if any(v is None for v in values) else values


def _try_g_prefix(text: str, warnings: List[str]) -> Optional[ParsedTimeControl]:
    lower = text.lower()
    if lower.startswith("game"):
        rest = lower[4:]
    elif lower.startswith("g"):
        rest = lower[1:]
    else:
        return None

    rest = rest.lstrip()
    if rest[:1] in ("/", ":"):
        rest = rest[1:]

    candidate = rest.strip().replace(";+", "+").replace(";", "+")
    candidate = _replace_all(
        candidate, _OPERATOR_SPACING[:3] + [("\t+", "+"), ("+\t", "+")]
    )
    while "++" in candidate:
        candidate = candidate.replace("++", "+")

    match = _G_PREFIX_NUMERIC_RE.match(candidate.strip())
    if not match:
        return None
    base = _u32(match.group(1))
    if base is None:
        return None
    increment = _u32(match.group(2)) if match.group(2) else None

    warnings.append("interpreted_g_prefix_as_minutes")
    periods, overflow = _minute_periods((None, base, increment))
    return _inferred(text, warnings, periods, overflow)


def _try_apostrophe_per_move(text, warnings):
    match = _APOSTROPHE_PER_MOVE_RE.match(text)
    values = match and _groups_u32(match, 1, 2)
    if not values:
        return None
    warnings.append("interpreted_apostrophe_per_move_suffix")
    periods, overflow = _minute_periods((None, values[0], values[1]))
    return _inferred(text, warnings, periods, overflow)


def _try_compact_fide_apostrophe(text, warnings):
    for pattern, code in (
        (_FIDE_APOSTROPHE_WITH_MOVE_RE, "interpreted_compact_fide_apostrophe"),
        (_FIDE_APOSTROPHE_G_COMPACT_RE, "interpreted_compact_fide_apostrophe"),
        (_FIDE_APOSTROPHE_BONUS_RE, "interpreted_compact_fide_bonus_wording"),
    ):
        match = pattern.match(text)
        if match:
            break
    else:
        return None

    values = _groups_u32(match, 1, 2, 3, 4)
    if not values:
        return None
    base, moves, rest, inc = values
    warnings.append(code)
    periods, overflow = _minute_periods((moves, base, inc), (None, rest, inc))
    return _inferred(text, warnings, periods, overflow)


def _try_fide_additional(text, warnings):
    match = _FIDE_ADDITIONAL_RE.match(text)
    values = match and _groups_u32(match, 1, 2, 3)
    if not values:
        return None
    base, inc, rest = values
    warnings.append("interpreted_fide_additional_wording")
    periods, overflow = _minute_periods((40, base, inc), (None, rest, inc))
    return _inferred(text, warnings, periods, overflow)


def _try_fide_triple_plus(text, warnings):
    match = _FIDE_TRIPLE_PLUS_RE.match(text)
    values = match and _groups_u32(match, 1, 2, 3)
    if not values:
        return None
    base, rest, inc = values
    warnings.append("interpreted_compact_fide_triple_plus")
    periods, overflow = _minute_periods((40, base, inc), (None, rest, inc))
    return _inferred(text, warnings, periods, overflow)


def _try_two_stage_slash(text, warnings):
    match = _TWO_STAGE_SLASH_RE.match(text)
    values = match and _groups_u32(match, 1, 2, 3, 4)
    if not values:
        return None
    first, first_inc, second, second_inc = values
    warnings.append("interpreted_two_stage_slash_shorthand")
    periods, overflow = _minute_periods(
        (None, first, first_inc), (None, second, second_inc)
    )
    return _inferred(text, warnings, periods, overflow)


def _try_compact_min_sec_inc(text, warnings):
    match = _COMPACT_MIN_SEC_INC_RE.match(text)
    values = match and _groups_u32(match, 1, 2)
    if not values:
        return None
    warnings.append("interpreted_compact_minute_second_increment")
    periods, overflow = _minute_periods((None, values[0], values[1]))
    return _inferred(text, warnings, periods, overflow)


def _try_clock_style_inc(text, warnings):
    match = _CLOCK_STYLE_INC_RE.match(text)
    values = match and _groups_u32(match, 1, 2, 3)
    if not values:
        return None
    hours, minutes, inc = values
    base = _checked(hours * 3600 + minutes * 60)
    warnings.append("interpreted_clock_style_base")
    return _inferred(text, warnings, [Period(base or 0, None, inc)], base is None)


def _try_apostrophe_notation(text, warnings):
    if text.endswith("''"):
        without = text[:-2]
        if "'" in without:
            minutes_s, seconds_s = without.split("'", 1)
            minutes = _u32(minutes_s)
            if minutes is None:
                return None
            seconds_s = seconds_s[1:] if seconds_s.startswith("+") else seconds_s
            seconds = 0 if not seconds_s else _u32(seconds_s)
            if seconds is None:
                return None
            warnings.append("interpreted_apostrophe_notation")
            periods, overflow = _minute_periods((None, minutes, seconds))
            return _inferred(text, warnings, periods, overflow)

        seconds = _u32(without)
        if seconds is not None:
            warnings.append("interpreted_apostrophe_notation")
            return ParsedTimeControl(
                text,
                str(seconds),
                [Period(seconds)],
                Mode.NORMAL,
                list(warnings),
                inferred=True,
            )

    if text.endswith("'") and not text.endswith("''"):
        minutes = _u32(text[:-1])
        if minutes is not None:
            warnings.append("interpreted_apostrophe_notation")
            periods, overflow = _minute_periods((None, minutes, None))
            return _inferred(text, warnings, periods, overflow)
    return None


def _try_inference(text: str, warnings: List[str]) -> Optional[ParsedTimeControl]:
    for attempt in (
        _try_g_prefix,
        _try_apostrophe_per_move,
        _try_compact_fide_apostrophe,
        _try_fide_additional,
        _try_fide_triple_plus,
        _try_two_stage_slash,
        _try_compact_min_sec_inc,
        _try_clock_style_inc,
        _try_apostrophe_notation,
    ):
        parsed = attempt(text, warnings)
        if parsed is not None:
            return parsed

    if "+" in text:
        parts = text.split("+")
        if len(parts) == 2:
            base, inc = _u32(parts[0]), _u32(parts[1])
            if base is not None and inc is not None:
                if base < 60 and inc <= 60:
                    warnings.append("interpreted_small_base_as_minutes")
                    periods, overflow = _minute_periods((None, base, inc))
                    return _inferred(text, warnings, periods, overflow)
                if base in (75, 90) and inc == 30:
                    warnings.append("interpreted_classical_75_90_as_minutes")
                    periods, overflow = _minute_periods((None, base, inc))
                    return _inferred(text, warnings, periods, overflow)

    if not any(c in text for c in "+/:"):
        bare = _u32(text)
        if bare is not None and bare < 60:
            warnings.append("interpreted_small_bare_number_as_minutes")
            periods, overflow = _minute_periods((None, bare, None))
            return _inferred(text, warnings, periods, overflow)
    return None


def _try_free_text(text: str, warnings: List[str]) -> Optional[ParsedTimeControl]:
    lower = text.lower()

    stage = _FREETEXT_FIDE_STAGE_RE.search(lower)
    rest = _FREETEXT_FIDE_REST_RE.search(lower)
    inc = _FREETEXT_INC_RE.search(lower)
    if stage and rest and inc:
        base_min = _u32(stage.group(1))
        moves = _u32(stage.group(2) or stage.group(3))
        rest_min = _u32(rest.group(1))
        inc_secs = _u32(inc.group(1))
        if None not in (base_min, moves, rest_min, inc_secs):
            warnings.append("matched_free_text_template_fide_classical")
            periods, overflow = _minute_periods(
                (moves, base_min, inc_secs), (None, rest_min, inc_secs)
            )
            return _inferred(text, warnings, periods, overflow)

    if not any(word in lower for word in ("min", "sek", "sec")):
        return None

    increment = None
    template = lower
    if inc:
        increment = _u32(inc.group(1))
        template = _FREETEXT_INC_RE.sub(" ", lower)

    minutes = seconds = None
    for match in _FREETEXT_MINUTE_RE.finditer(template):
        minutes = _u32(match.group(1))
    for match in _FREETEXT_SECOND_RE.finditer(template):
        seconds = _u32(match.group(1))

    if minutes is None:
        return None

    base = _minutes(minutes)
    if base is not None and seconds is not None:
        base = _checked(base + seconds)

    warnings.append("matched_free_text_template")
    return _inferred(text, warnings, [Period(base or 0, None, increment)], base is None)


def _strip_trailing_qualifier(text: str) -> Optional[str]:
    match = _TRAILING_QUALIFIER_RE.match(text)
    if not match:
        return None
    core, suffix = match.group(1).strip(), match.group(2).strip()
    if not core or not suffix:
        return None
    if any(c.isdigit() or c in "+/:*-?'\"&|" for c in suffix):
        return None
    return core


def _parse_core(text: str, warnings: List[str]) -> Optional[ParsedTimeControl]:
    for attempt in (_try_strict, _try_inference, _try_free_text):
        parsed = attempt(text, warnings)
        if parsed is not None:
            return parsed
    return None


# ------------------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------------------


def parse_timecontrol(raw: str) -> Optional[ParsedTimeControl]:
    """
    Parse a TimeControl header value.

    Returns None for empty input; an unrecognized value parses to
    ``mode=UNKNOWN`` with ``normalized=None``.
    """
    if not raw.strip():
        return None

    text, warnings, ambiguous = _preprocess(raw)
    if ambiguous:
        return ParsedTimeControl(raw, None, [], Mode.UNKNOWN, warnings)

    parsed = _parse_core(text, warnings)
    if parsed is None:
        core = _strip_trailing_qualifier(text)
        if core is not None:
            fallback_warnings = warnings + ["ignored_trailing_qualifier_suffix"]
            parsed = _parse_core(core, fallback_warnings)

    if parsed is None:
        return ParsedTimeControl(raw, None, [], Mode.UNKNOWN, warnings)

    parsed.raw = raw
    return parsed


def category_from_parsed(parsed: ParsedTimeControl) -> Optional[str]:
    """Speed class from the first period: base + 40 × increment seconds."""
    if parsed.mode is not Mode.NORMAL or parsed.overflow or not parsed.periods:
        return None

    first = parsed.periods[0]
    estimate = first.base_seconds + 40 * (first.increment_seconds or 0)
    for upper, name in CATEGORY_BANDS:
        if estimate < upper:
            return name
    return "classical"


def timecontrol_normalize(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    parsed = parse_timecontrol(raw)
    return parsed.normalized if parsed else None


def timecontrol_category(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    parsed = parse_timecontrol(raw)
    return category_from_parsed(parsed) if parsed else None


def timecontrol_to_json(parsed: ParsedTimeControl) -> str:
    periods = []
    for p in parsed.periods:
        entry = {}
        if p.moves is not None:
            entry["moves"] = p.moves
        entry["base"] = p.base_seconds
        if p.increment_seconds is not None:
            entry["increment"] = p.increment_seconds
        periods.append(entry)

    return json.dumps(
        {
            "raw": parsed.raw,
            "normalized": parsed.normalized,
            "mode": parsed.mode.value,
            "periods": periods,
            "warnings": parsed.warnings,
            "inferred": parsed.inferred,
            "overflow": parsed.overflow,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def timecontrol_json(raw: Optional[str]) -> Optional[str]:
    """JSON description of `raw`; empty input reports a `parse_error` warning."""
    if raw is None:
        return None
    parsed = parse_timecontrol(raw) or ParsedTimeControl(
        raw, None, [], Mode.UNKNOWN, ["parse_error"]
    )
    return timecontrol_to_json(parsed)
