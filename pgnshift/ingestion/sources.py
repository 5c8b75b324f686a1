# ==============================================================================
# sources.py  –  Byte sources → UTF-8 text streams
# ------------------------------------------------------------------------------
# Responsibilities:
#   • Validate the compression option ("zstd" or nothing)
#   • Expand a path pattern into an ordered list of sources
#   • Open one source as text, decompressing zstd frames on the fly;
#     invalid UTF-8 becomes U+FFFD instead of raising
# ==============================================================================

from __future__ import annotations

import glob
import io
import os
from dataclasses import dataclass
from typing import List, Optional, TextIO

import zstandard as zstd

from pgnshift.utils.errors import (
    DecompressionFailure,
    SourceOpenFailure,
    UnsupportedOptionError,
)

ZSTD = "zstd"
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
_GLOB_CHARS = ("*", "?", "[")
_MAX_WINDOW_SIZE = 2147483648  # lichess dumps use long-distance windows


@dataclass(frozen=True)
class Source:
    path: str
    explicit: bool  # named directly (fatal on failure) vs. found by a glob


# ------------------------------------------------------------------------------
# Options
# ------------------------------------------------------------------------------


def parse_compression(value: Optional[str]) -> Optional[str]:
    """
    Validate a compression option.

    Returns
    -------
    Optional[str]
        ``"zstd"`` or ``None`` (plain text).

    Raises
    ------
    UnsupportedOptionError
        For anything other than zstd / NULL / omitted (including "").
    """
    if value is None:
        return None

    normalized = value.strip().lower()
    if normalized == ZSTD:
        return ZSTD
    if normalized == "null":
        return None

    raise UnsupportedOptionError(
        f"Invalid compression value '{value}'. "
        "Supported values: 'zstd' or NULL/omitted."
    )


# ------------------------------------------------------------------------------
# Resolution
# ------------------------------------------------------------------------------


def is_glob_pattern(pattern: str) -> bool:
    return any(ch in pattern for ch in _GLOB_CHARS)


def resolve_sources(pattern: str) -> List[Source]:
    """
    Expand `pattern` into sources, sorted by path.

    A pattern without glob characters is one explicit source, whether or
    not it exists yet (opening it reports the failure).
    """
    expanded = os.path.expanduser(pattern)
    if not is_glob_pattern(expanded):
        return [Source(path=expanded, explicit=True)]

    matches = sorted(p for p in glob.glob(expanded) if not os.path.isdir(p))
    if not matches:
        raise SourceOpenFailure(pattern, f"No files match pattern '{pattern}'")
    return [Source(path=p, explicit=False) for p in matches]


# ------------------------------------------------------------------------------
# Opening
# ------------------------------------------------------------------------------


def _open_binary(path: str):
    try:
        return open(path, "rb")
    except OSError as exc:
        raise SourceOpenFailure(path, f"Failed to open file '{path}': {exc}") from exc


def open_source(source: Source, compression: Optional[str]) -> TextIO:
    """
    Open `source` as a text stream (utf-8, errors replaced).

    The caller owns the returned stream and must close it.
    """
    fh = _open_binary(source.path)

    if compression != ZSTD:
        return io.TextIOWrapper(fh, encoding="utf-8", errors="replace")

    try:
        magic = fh.read(len(ZSTD_MAGIC))
        fh.seek(0)
    except OSError as exc:
        fh.close()
        raise SourceOpenFailure(
            source.path, f"Failed to open file '{source.path}': {exc}"
        ) from exc

    if magic != ZSTD_MAGIC:
        fh.close()
        raise DecompressionFailure(
            source.path,
            f"Failed to decompress file '{source.path}': not a zstd frame",
        )

    reader = zstd.ZstdDecompressor(max_window_size=_MAX_WINDOW_SIZE).stream_reader(fh)
    return io.TextIOWrapper(reader, encoding="utf-8", errors="replace")
