"""Per-repository operation engine.

Decides, for one manifest record and a requested high-level operation, which
VCS invocations to run, and folds their results into a RepoOutcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from .driver import DecodeError, SpawnError, SubprocessDriver, VcsDriver, VcsOp
from .inspector import RepoInspector
from .manifest import RepoRecord

logger = logging.getLogger(__name__)

SYNC_COMPLETE = "Sync complete"


# =============================================================================
# Domain Models
# =============================================================================


class HighLevelOp(StrEnum):
    """Operations a user can request for the whole manifest."""

    SYNC = "sync"
    CLONE = "clone"
    PULL = "pull"
    PUSH = "push"


class PhaseStatus(StrEnum):
    """Result of one phase."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILURE = "failure"


class ErrorKind(StrEnum):
    """Classification of a phase failure."""

    SPAWN = "spawn"
    DECODE = "decode"
    UNSTAGED_CHANGES = "unstaged_changes"
    NON_ZERO_EXIT = "non_zero_exit"


# Failure kinds that make the whole batch exit non-zero
HARD_ERRORS = frozenset({ErrorKind.SPAWN, ErrorKind.DECODE, ErrorKind.UNSTAGED_CHANGES})


class UnstagedChanges(Exception):
    """Pull refused because the working tree has unstaged changes."""

    def __init__(self, branch: str):
        super().__init__(f"Unstaged changes on branch '{branch}'")
        self.branch = branch


@dataclass
class PhaseResult:
    """One observable step of an operation on a repository."""

    phase: str
    status: PhaseStatus
    message: str = ""
    branch: str = ""
    cwd: str = ""
    error_kind: ErrorKind | None = None

    @property
    def is_hard_error(self) -> bool:
        return self.status == PhaseStatus.FAILURE and self.error_kind in HARD_ERRORS

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "status": self.status.value,
            "message": self.message,
            "branch": self.branch,
            "cwd": self.cwd,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass
class RepoOutcome:
    """Everything that happened to one repository during a run."""

    record: RepoRecord
    operation: HighLevelOp
    phase_results: list[PhaseResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(p.status == PhaseStatus.FAILURE for p in self.phase_results)

    @property
    def has_hard_error(self) -> bool:
        return any(p.is_hard_error for p in self.phase_results)

    @property
    def failures(self) -> list[PhaseResult]:
        return [p for p in self.phase_results if p.status == PhaseStatus.FAILURE]

    def add(
        self,
        phase: str,
        status: PhaseStatus,
        message: str = "",
        **kwargs,
    ) -> PhaseResult:
        result = PhaseResult(phase=phase, status=status, message=message, **kwargs)
        self.phase_results.append(result)
        return result

    def to_dict(self) -> dict:
        return {
            "repo": self.record.to_dict(),
            "operation": self.operation.value,
            "success": self.success,
            "hard_error": self.has_hard_error,
            "phases": [p.to_dict() for p in self.phase_results],
        }


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


def _error_kind(error: SpawnError) -> ErrorKind:
    return ErrorKind.DECODE if isinstance(error, DecodeError) else ErrorKind.SPAWN


# =============================================================================
# Engine
# =============================================================================


class OperationEngine:
    """Runs high-level operations against single repositories."""

    def __init__(self, driver: VcsDriver | None = None):
        self.driver = driver if driver is not None else SubprocessDriver()

    def run_on_repo(self, record: RepoRecord, op: HighLevelOp) -> RepoOutcome:
        """Run ``op`` against ``record`` and report every phase."""
        outcome = RepoOutcome(record=record, operation=op)
        logger.debug("%s: starting %s", record.path, op)

        if op == HighLevelOp.CLONE:
            self._clone(record, outcome)
        elif op == HighLevelOp.PULL:
            self._pull(record, outcome)
        elif op == HighLevelOp.PUSH:
            self._push(record, outcome)
        elif op == HighLevelOp.SYNC:
            self._sync(record, outcome)
        else:
            raise ValueError(f"Unknown operation: {op}")

        return outcome

    # -------------------------------------------------------------------------
    # Clone
    # -------------------------------------------------------------------------

    def _clone(self, record: RepoRecord, outcome: RepoOutcome) -> bool:
        try:
            result = self.driver.run(VcsOp.CLONE, record)
        except SpawnError as e:
            outcome.add("Clone", PhaseStatus.FAILURE, str(e), error_kind=_error_kind(e))
            return False

        if not result.exit_success:
            outcome.add(
                "Clone",
                PhaseStatus.FAILURE,
                result.stderr_text(),
                error_kind=ErrorKind.NON_ZERO_EXIT,
            )
            return False

        outcome.add("Clone", PhaseStatus.SUCCESS, _text(result.stdout) or _text(result.stderr))
        return True

    # -------------------------------------------------------------------------
    # Pull / Push
    # -------------------------------------------------------------------------

    def _pull(self, record: RepoRecord, outcome: RepoOutcome) -> bool:
        """Pull every branch; False when the repository was refused or unreadable."""
        inspector = RepoInspector(self.driver, record)
        try:
            if inspector.has_unstaged_changes(record.path):
                raise UnstagedChanges(
                    inspector.get_current_branch(record.path).rstrip("\r\n")
                )
            targets = self._targets(inspector, record)
        except UnstagedChanges as e:
            logger.debug("%s: refusing to pull, %s", record.path, e)
            outcome.add(
                "Pull",
                PhaseStatus.FAILURE,
                str(e),
                branch=e.branch,
                error_kind=ErrorKind.UNSTAGED_CHANGES,
            )
            return False
        except SpawnError as e:
            outcome.add("Pull", PhaseStatus.FAILURE, str(e), error_kind=_error_kind(e))
            return False

        self._run_branches(record, outcome, "Pull", VcsOp.PULL, targets)
        return True

    def _push(self, record: RepoRecord, outcome: RepoOutcome) -> bool:
        inspector = RepoInspector(self.driver, record)
        try:
            targets = self._targets(inspector, record)
        except SpawnError as e:
            outcome.add("Push", PhaseStatus.FAILURE, str(e), error_kind=_error_kind(e))
            return False

        self._run_branches(record, outcome, "Push", VcsOp.PUSH, targets)
        return True

    @staticmethod
    def _targets(inspector: RepoInspector, record: RepoRecord) -> list[tuple[str, str]]:
        """(branch, working directory) pairs the layout calls for."""
        if inspector.has_worktrees(record.path):
            return [
                (branch, str(Path(record.path) / branch))
                for branch in inspector.get_worktrees(record.path)
            ]
        return [(branch, record.path) for branch in inspector.get_branches(record.path)]

    def _run_branches(
        self,
        record: RepoRecord,
        outcome: RepoOutcome,
        phase: str,
        op: VcsOp,
        targets: list[tuple[str, str]],
    ) -> None:
        if not targets:
            outcome.add(phase, PhaseStatus.SKIPPED, "No branches")
            return

        first_hard: PhaseResult | None = None
        for branch, cwd in targets:
            try:
                result = self.driver.run(op, record, cwd, branch)
            except SpawnError as e:
                failed = outcome.add(
                    phase,
                    PhaseStatus.FAILURE,
                    str(e),
                    branch=branch,
                    cwd=cwd,
                    error_kind=_error_kind(e),
                )
                first_hard = first_hard or failed
                continue

            if result.exit_success:
                outcome.add(
                    phase,
                    PhaseStatus.SUCCESS,
                    _text(result.stdout) or _text(result.stderr),
                    branch=branch,
                    cwd=cwd,
                )
            else:
                outcome.add(
                    phase,
                    PhaseStatus.FAILURE,
                    result.stderr_text(),
                    branch=branch,
                    cwd=cwd,
                    error_kind=ErrorKind.NON_ZERO_EXIT,
                )

        if first_hard is not None:
            outcome.add(
                phase,
                PhaseStatus.FAILURE,
                f"{phase} failed on '{first_hard.branch}': {first_hard.message}",
                error_kind=first_hard.error_kind,
            )
        else:
            outcome.add(phase, PhaseStatus.SUCCESS, f"{len(targets)} branch(es) processed")

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    def _sync(self, record: RepoRecord, outcome: RepoOutcome) -> None:
        inspector = RepoInspector(self.driver, record)
        if not inspector.is_cloned(record.path):
            logger.debug("%s: not cloned, cloning", record.path)
            if not self._clone(record, outcome):
                return
        else:
            logger.debug("%s: cloned, pulling then pushing", record.path)
            if not self._pull(record, outcome):
                return
            if not self._push(record, outcome):
                return

        outcome.add(SYNC_COMPLETE, PhaseStatus.SUCCESS)
