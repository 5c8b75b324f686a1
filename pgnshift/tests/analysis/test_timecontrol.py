# ==============================================================================
# test_timecontrol.py  –  TimeControl parsing, normalization, categories
# ==============================================================================

import json

import pytest

from pgnshift.analysis.timecontrol import (
    OVERFLOW_WARNING,
    Mode,
    Period,
    parse_timecontrol,
    timecontrol_category,
    timecontrol_json,
    timecontrol_normalize,
)


# ------------------------------------------------------------------------------
# Strict forms
# ------------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw,normalized,mode",
    [
        ("?", "?", Mode.UNKNOWN),
        ("-", "-", Mode.UNLIMITED),
        ("*60", "*60", Mode.SANDCLOCK),
        ("180+2", "180+2", Mode.NORMAL),
        ("600", "600", Mode.NORMAL),
        ("40/5400+30:1800+30", "40/5400+30:1800+30", Mode.NORMAL),
    ],
)
def test_strict_values_pass_through(raw, normalized, mode):
    parsed = parse_timecontrol(raw)
    assert parsed.normalized == normalized
    assert parsed.mode is mode
    assert parsed.inferred is False


def test_multi_stage_periods():
    parsed = parse_timecontrol("40/5400+30:1800+30")
    assert parsed.periods == [Period(5400, 40, 30), Period(1800, None, 30)]


# ------------------------------------------------------------------------------
# Inferred forms
# ------------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw,normalized",
    [
        ("3+2", "180+2"),
        ("G/45", "2700"),
        ("90'+30''", "5400+30"),
        ("29''", "29"),
        ("90 min for 40 moves + 30 min + 30 sec per move", "40/5400+30:1800+30"),
    ],
)
def test_inferred_values(raw, normalized):
    parsed = parse_timecontrol(raw)
    assert parsed.normalized == normalized
    assert parsed.inferred is True
    assert parsed.warnings


def test_whitespace_is_trimmed_and_raw_preserved():
    parsed = parse_timecontrol(" 15 + 10 ")

    assert parsed.raw == " 15 + 10 "
    assert parsed.normalized == "900+10"
    assert "trimmed" in parsed.warnings
    assert "normalized_operator_whitespace" in parsed.warnings


def test_overflow_has_no_normalized_form():
    parsed = parse_timecontrol("G71582789")

    assert parsed.overflow is True
    assert parsed.normalized is None
    assert OVERFLOW_WARNING in parsed.warnings
    assert timecontrol_category("G71582789") is None


@pytest.mark.parametrize("raw", ["x/600+5", "klassisch"])
def test_unrecognized_values(raw):
    parsed = parse_timecontrol(raw)
    assert parsed.mode is Mode.UNKNOWN
    assert parsed.normalized is None


def test_empty_input():
    assert parse_timecontrol("   ") is None
    assert timecontrol_normalize(None) is None
    assert timecontrol_normalize("") is None


# ------------------------------------------------------------------------------
# Categories + JSON
# ------------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw,category",
    [
        ("29''", "ultra-bullet"),
        ("60+0", "bullet"),
        ("180+2", "blitz"),
        ("2+12", "rapid"),
        ("29+0", "classical"),
        ("?", None),
        ("-", None),
        ("*60", None),
        ("klassisch", None),
        (None, None),
    ],
)
def test_category(raw, category):
    assert timecontrol_category(raw) == category


def test_json_description():
    payload = json.loads(timecontrol_json("180+2"))
    assert payload == {
        "raw": "180+2",
        "normalized": "180+2",
        "mode": "normal",
        "periods": [{"base": 180, "increment": 2}],
        "warnings": [],
        "inferred": False,
        "overflow": False,
    }


def test_json_for_empty_and_null():
    assert json.loads(timecontrol_json(""))["warnings"] == ["parse_error"]
    assert timecontrol_json(None) is None
