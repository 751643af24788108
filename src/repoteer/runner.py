"""Batch runner: applies one operation to every repository in a manifest."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field

from . import exit_codes
from .driver import VcsDriver
from .engine import HighLevelOp, OperationEngine, RepoOutcome
from .manifest import Manifest, RepoRecord

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Counts over a finished batch."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    hard_errors: int = 0
    not_attempted: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "hard_errors": self.hard_errors,
            "not_attempted": self.not_attempted,
        }


@dataclass
class BatchReport:
    """Outcomes of one run, in manifest order."""

    operation: HighLevelOp
    total: int
    outcomes: list[RepoOutcome] = field(default_factory=list)
    truncated: bool = False

    @property
    def has_hard_error(self) -> bool:
        return any(o.has_hard_error for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        if self.truncated:
            return exit_codes.INTERRUPTED
        if self.has_hard_error:
            return exit_codes.GENERAL_ERROR
        return exit_codes.SUCCESS

    def summary(self) -> BatchSummary:
        return BatchSummary(
            total=self.total,
            succeeded=sum(1 for o in self.outcomes if o.success),
            failed=sum(1 for o in self.outcomes if not o.success),
            hard_errors=sum(1 for o in self.outcomes if o.has_hard_error),
            not_attempted=self.total - len(self.outcomes),
        )

    def to_dict(self) -> dict:
        return {
            "command": self.operation.value,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "summary": self.summary().to_dict(),
            "truncated": self.truncated,
        }


@contextmanager
def stop_on_signals(stop: threading.Event) -> Iterator[threading.Event]:
    """Turn SIGINT/SIGTERM into a stop request for the batch.

    The running subprocess is left to finish; no further repositories are
    dispatched. Handlers are restored on exit.
    """

    def handler(signum, frame):
        logger.warning("Received signal %d, stopping after current repository", signum)
        stop.set()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield stop
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def run_operations(
    operation: HighLevelOp,
    manifest: Manifest,
    *,
    driver: VcsDriver | None = None,
    jobs: int = 1,
    stop: threading.Event | None = None,
    on_outcome: Callable[[RepoOutcome], None] | None = None,
) -> BatchReport:
    """Run ``operation`` on every repository of ``manifest``.

    A failing repository never halts the batch. ``on_outcome`` is called once
    per repository, in manifest order, as soon as that repository (and all
    repositories before it) have finished.
    """
    engine = OperationEngine(driver)
    if stop is None:
        stop = threading.Event()
    report = BatchReport(operation=operation, total=len(manifest.repos))

    def collect(outcome: RepoOutcome) -> None:
        report.outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)

    if jobs <= 1 or len(manifest.repos) <= 1:
        for record in manifest.repos:
            if stop.is_set():
                break
            collect(engine.run_on_repo(record, operation))
    else:
        def task(record: RepoRecord) -> RepoOutcome | None:
            if stop.is_set():
                return None
            return engine.run_on_repo(record, operation)

        with ThreadPoolExecutor(max_workers=jobs) as executor:
            futures = [executor.submit(task, record) for record in manifest.repos]
            for future in futures:
                outcome = future.result()
                if outcome is None:
                    break
                collect(outcome)
            # Only affects repositories not yet started after a stop request
            for pending in futures:
                pending.cancel()

    report.truncated = len(report.outcomes) < report.total
    if report.truncated:
        logger.warning(
            "Stopped after %d of %d repositories", len(report.outcomes), report.total
        )
    return report
