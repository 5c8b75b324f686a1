# ==============================================================================
# errors.py  –  Exception taxonomy for pgnshift
#
#   PgnShiftError
#     ├── SourceError
#     │     ├── SourceOpenFailure       (file cannot be opened / read)
#     │     └── DecompressionFailure    (zstd frame missing or corrupt)
#     ├── PgnSyntaxError                (carries the failing `stage`)
#     │     ├── HeaderSyntaxError
#     │     └── MovetextSyntaxError
#     ├── IllegalMoveError              (SAN does not resolve on the board)
#     ├── FieldConversionError          (typed header column conversion)
#     └── UnsupportedOptionError        (bad option value, raised up front)
# ==============================================================================

from __future__ import annotations


class PgnShiftError(Exception):
    """Base class for every error raised by pgnshift."""


# ------------------------------------------------------------------------------
# Sources
# ------------------------------------------------------------------------------


class SourceError(PgnShiftError):
    """A byte source could not be turned into a text stream."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class SourceOpenFailure(SourceError):
    pass


class DecompressionFailure(SourceError):
    pass


# ------------------------------------------------------------------------------
# Tokenizer
# ------------------------------------------------------------------------------


class PgnSyntaxError(PgnShiftError):
    """Malformed PGN; `stage` names the part of the game that failed."""

    stage = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class HeaderSyntaxError(PgnSyntaxError):
    stage = "headers"


class MovetextSyntaxError(PgnSyntaxError):
    stage = "movetext"


# ------------------------------------------------------------------------------
# Values
# ------------------------------------------------------------------------------


class IllegalMoveError(PgnShiftError, ValueError):
    """A SAN token that is invalid, ambiguous or illegal in the position."""

    def __init__(self, san: str, fen: str) -> None:
        super().__init__(f"illegal san {san!r} in {fen}")
        self.san = san
        self.fen = fen


class FieldConversionError(PgnShiftError, ValueError):
    """A header value could not be converted to its column type."""

    def __init__(self, label: str, raw: str, cause: str) -> None:
        super().__init__(f"Conversion error: {label}='{raw}' ({cause})")
        self.label = label
        self.raw = raw
        self.cause = cause


class UnsupportedOptionError(PgnShiftError, ValueError):
    pass
