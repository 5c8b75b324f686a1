# ==============================================================================
# diagnostics.py  –  Warning + counter channel shared by PGN workers
# ------------------------------------------------------------------------------
# One `Diagnostics` object is created per read and passed to every worker.
# Workers count into their own `WorkerTally` and merge it back exactly once,
# so a failing worker never holds a lock another worker needs.
# ==============================================================================

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter

from pgnshift.utils.logging_utils import setup_logger


@dataclass
class WorkerTally:
    games: int = 0
    games_with_errors: int = 0
    sources_skipped: int = 0
    warnings: int = 0


class Diagnostics:
    """
    Logger + per-read counters.

    Parameters
    ----------
    logger : logging.Logger | None
        Destination for warnings (default: the ``pgn_reader`` logger).
    registry : CollectorRegistry | None
        Prometheus registry to register counters in. A private registry is
        created when omitted so repeated reads never collide.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.logger = logger or setup_logger("pgn_reader")
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()
        self._totals = WorkerTally()

        self._games = Counter(
            "pgn_games_parsed",
            "Games emitted by the PGN reader",
            registry=self.registry,
        )
        self._errors = Counter(
            "pgn_games_with_errors",
            "Games emitted with a parse_error",
            registry=self.registry,
        )
        self._skipped = Counter(
            "pgn_sources_skipped",
            "Glob-expanded sources skipped after an open or read failure",
            registry=self.registry,
        )
        self._warnings = Counter(
            "pgn_warnings",
            "Warnings raised while reading PGN",
            registry=self.registry,
        )

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    @staticmethod
    def new_tally() -> WorkerTally:
        return WorkerTally()

    def warn(self, tally: WorkerTally, message: str, *args) -> None:
        tally.warnings += 1
        self.logger.warning(message, *args)

    def game_failed(self, tally: WorkerTally, diagnostic: str) -> None:
        self.warn(tally, "%s", diagnostic)

    def source_skipped(self, tally: WorkerTally, path: str, exc: Exception) -> None:
        tally.sources_skipped += 1
        self.warn(tally, "Skipping source '%s': %s", path, exc)

    def merge(self, tally: WorkerTally) -> None:
        """Fold a finished worker's tally into the shared totals."""
        with self._lock:
            self._totals.games += tally.games
            self._totals.games_with_errors += tally.games_with_errors
            self._totals.sources_skipped += tally.sources_skipped
            self._totals.warnings += tally.warnings

        self._games.inc(tally.games)
        self._errors.inc(tally.games_with_errors)
        self._skipped.inc(tally.sources_skipped)
        self._warnings.inc(tally.warnings)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, int]:
        with self._lock:
            return {
                "games": self._totals.games,
                "games_with_errors": self._totals.games_with_errors,
                "sources_skipped": self._totals.sources_skipped,
                "warnings": self._totals.warnings,
            }
