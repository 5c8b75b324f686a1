# ==============================================================================
# read_pgn.py  –  Stream GameRecords out of one or many PGN sources
# ------------------------------------------------------------------------------
# Execution flow:
#   1. Validate `compression` and resolve the path pattern (fails up front)
#   2. For each source: open → read game by game → yield GameRecord
#        • syntax failures finalize a partial record and keep going
#        • an explicit source that cannot be read is fatal
#        • a glob-expanded source that cannot be read is skipped + logged
#   3. With max_workers > 1, sources run on a thread pool; every source holds
#      at most `buffer_games` un-consumed records (credit semaphore), and
#      closing the iterator cancels everything still queued or running
# ==============================================================================

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from typing import Iterator, List, Optional

import zstandard as zstd

from pgnshift.db.schema import GameRecord
from pgnshift.ingestion.game_visitor import GameVisitor, stage_diagnostic
from pgnshift.ingestion.pgn_reader import PgnReader
from pgnshift.ingestion.sources import (
    Source,
    open_source,
    parse_compression,
    resolve_sources,
)
from pgnshift.utils.diagnostics import Diagnostics, WorkerTally
from pgnshift.utils.errors import (
    DecompressionFailure,
    PgnSyntaxError,
    SourceError,
    SourceOpenFailure,
)

DEFAULT_BUFFER_GAMES = 16
_POLL_SECONDS = 0.05
_DONE = object()


class _WorkerFailure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


# ------------------------------------------------------------------------------
# One source
# ------------------------------------------------------------------------------


def iter_source_games(
    source: Source,
    compression: Optional[str],
    diagnostics: Diagnostics,
    tally: WorkerTally,
    cancel: Optional[threading.Event] = None,
) -> Iterator[GameRecord]:
    """
    Yield every game of `source`, numbering games from 1.

    Counts go into `tally`; the caller merges it into `diagnostics`.
    """
    try:
        stream = open_source(source, compression)
    except SourceError as exc:
        if source.explicit:
            raise
        diagnostics.source_skipped(tally, source.path, exc)
        return

    with stream:
        reader = PgnReader(stream)
        visitor = GameVisitor()
        game_index = 0

        while cancel is None or not cancel.is_set():
            game_index += 1
            try:
                if not reader.read_game(visitor):
                    break
                record = visitor.record
            except PgnSyntaxError as exc:
                diagnostic = stage_diagnostic(
                    exc.stage, source.path, game_index, exc.message
                )
                record = visitor.finalize_partial(diagnostic)
                diagnostics.game_failed(tally, diagnostic)
            except (OSError, EOFError, zstd.ZstdError) as exc:
                failure_cls = DecompressionFailure if compression else SourceOpenFailure
                failure = failure_cls(
                    source.path, f"Failed to read file '{source.path}': {exc}"
                )
                if source.explicit:
                    raise failure from exc
                diagnostics.source_skipped(tally, source.path, failure)
                return

            tally.games += 1
            if record.parse_error:
                tally.games_with_errors += 1
            yield record


# ------------------------------------------------------------------------------
# Many sources
# ------------------------------------------------------------------------------


def _read_sequential(
    sources: List[Source], compression: Optional[str], diagnostics: Diagnostics
) -> Iterator[GameRecord]:
    for source in sources:
        tally = diagnostics.new_tally()
        try:
            yield from iter_source_games(source, compression, diagnostics, tally)
        finally:
            diagnostics.merge(tally)


def _pump_source(
    source: Source,
    compression: Optional[str],
    diagnostics: Diagnostics,
    out: "queue.Queue",
    cancel: threading.Event,
    buffer_games: int,
) -> None:
    """Worker body: push records for one source, never more than the credits allow."""
    credits = threading.BoundedSemaphore(buffer_games)
    tally = diagnostics.new_tally()
    try:
        games = iter_source_games(source, compression, diagnostics, tally, cancel)
        with closing(games):
            for record in games:
                while not credits.acquire(timeout=_POLL_SECONDS):
                    if cancel.is_set():
                        return
                out.put((record, credits))
    except Exception as exc:  # re-raised on the consumer thread
        out.put(_WorkerFailure(exc))
    finally:
        diagnostics.merge(tally)
        out.put(_DONE)


def _read_parallel(
    sources: List[Source],
    compression: Optional[str],
    diagnostics: Diagnostics,
    max_workers: int,
    buffer_games: int,
) -> Iterator[GameRecord]:
    out: "queue.Queue" = queue.Queue()
    cancel = threading.Event()
    executor = ThreadPoolExecutor(
        max_workers=min(max_workers, len(sources)), thread_name_prefix="pgn-reader"
    )

    try:
        for source in sources:
            executor.submit(
                _pump_source, source, compression, diagnostics, out, cancel, buffer_games
            )

        remaining = len(sources)
        while remaining:
            item = out.get()
            if item is _DONE:
                remaining -= 1
                continue
            if isinstance(item, _WorkerFailure):
                raise item.exc

            record, credits = item
            yield record
            credits.release()
    finally:
        cancel.set()
        executor.shutdown(wait=True, cancel_futures=True)


# ------------------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------------------


def read_pgn(
    path_pattern: str,
    compression: Optional[str] = None,
    max_workers: int = 1,
    buffer_games: int = DEFAULT_BUFFER_GAMES,
    diagnostics: Optional[Diagnostics] = None,
) -> Iterator[GameRecord]:
    """
    Return an iterator of GameRecords for every game matched by `path_pattern`.

    Parameters
    ----------
    path_pattern : str
        A file path, or a glob (``*``, ``?``, ``[``) expanding to many files.
    compression : str | None
        ``"zstd"`` or ``None``; anything else raises UnsupportedOptionError
        before a single row is produced.
    max_workers : int
        Number of sources read concurrently (1 = sequential).
    buffer_games : int
        Per-source cap on records produced but not yet consumed.
    diagnostics : Diagnostics | None
        Warning / counter channel (a fresh one when omitted).
    """
    codec = parse_compression(compression)
    sources = resolve_sources(path_pattern)
    channel = diagnostics or Diagnostics()

    if max_workers <= 1 or len(sources) == 1:
        return _read_sequential(sources, codec, channel)
    return _read_parallel(sources, codec, channel, max_workers, max(1, buffer_games))
