import pytest

from pgnshift.ingestion.sources import (
    Source,
    is_glob_pattern,
    open_source,
    parse_compression,
    resolve_sources,
)
from pgnshift.utils.errors import (
    DecompressionFailure,
    SourceOpenFailure,
    UnsupportedOptionError,
)


@pytest.mark.parametrize(
    "value,expected",
    [(None, None), ("zstd", "zstd"), (" ZSTD ", "zstd"), ("NULL", None), ("null", None)],
)
def test_parse_compression(value, expected):
    assert parse_compression(value) == expected


@pytest.mark.parametrize("value", ["gzip", "", "zstd2"])
def test_parse_compression_rejects(value):
    with pytest.raises(UnsupportedOptionError) as excinfo:
        parse_compression(value)
    assert f"Invalid compression value '{value}'" in str(excinfo.value)


def test_is_glob_pattern():
    assert is_glob_pattern("/data/*.pgn")
    assert is_glob_pattern("game?.pgn")
    assert is_glob_pattern("[ab].pgn")
    assert not is_glob_pattern("/data/games.pgn")


def test_resolve_plain_path_is_explicit(tmp_path):
    path = str(tmp_path / "missing.pgn")
    assert resolve_sources(path) == [Source(path, explicit=True)]


def test_resolve_glob_sorts_and_skips_directories(tmp_path):
    (tmp_path / "b.pgn").write_text("", encoding="utf-8")
    (tmp_path / "a.pgn").write_text("", encoding="utf-8")
    (tmp_path / "dir.pgn").mkdir()

    sources = resolve_sources(str(tmp_path / "*.pgn"))

    assert [s.path for s in sources] == [str(tmp_path / "a.pgn"), str(tmp_path / "b.pgn")]
    assert not any(s.explicit for s in sources)


def test_open_source_errors(tmp_path):
    with pytest.raises(SourceOpenFailure) as excinfo:
        open_source(Source(str(tmp_path / "nope.pgn"), True), None)
    assert "Failed to open file" in str(excinfo.value)

    plain = tmp_path / "plain.pgn"
    plain.write_text("1. e4 *\n", encoding="utf-8")
    with pytest.raises(DecompressionFailure):
        open_source(Source(str(plain), True), "zstd")


def test_open_source_plain_text(tmp_path):
    plain = tmp_path / "plain.pgn"
    plain.write_bytes(b"1. e4 *\n")
    with open_source(Source(str(plain), True), None) as stream:
        assert stream.read() == "1. e4 *\n"
