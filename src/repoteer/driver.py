"""Narrow adapter around the version control binary."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .manifest import RepoRecord, Service

logger = logging.getLogger(__name__)


class VcsError(Exception):
    """Base class for failures talking to the VCS binary."""


class SpawnError(VcsError):
    """The VCS binary could not be launched."""


class DecodeError(SpawnError):
    """VCS output was not valid text where text was required."""


class VcsOp(StrEnum):
    """Sub-commands the engine needs from a VCS."""

    CLONE = "clone"
    PULL = "pull"
    PUSH = "push"
    STATUS_PORCELAIN = "status_porcelain"
    WORKTREE_LIST = "worktree_list"
    BRANCH_LIST = "branch_list"
    CURRENT_BRANCH = "current_branch"


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one VCS invocation."""

    exit_success: bool
    stdout: bytes = b""
    stderr: bytes = b""

    def stdout_text(self) -> str:
        try:
            return self.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"VCS output is not valid UTF-8: {e}") from e

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class VcsDriver(Protocol):
    """Anything that can execute a VcsOp for a repository."""

    def run(
        self, op: VcsOp, repo: RepoRecord, path: str = "", branch: str = ""
    ) -> InvocationResult: ...


def git_args(op: VcsOp, repo: RepoRecord, branch: str = "") -> list[str]:
    """Build the git argument vector for an operation."""
    if op == VcsOp.CLONE:
        args = ["clone", repo.url, repo.path]
        if repo.is_bare:
            args.append("--bare")
        return args
    if op == VcsOp.PULL:
        return ["pull", "origin", branch]
    if op == VcsOp.PUSH:
        return ["push", "origin", branch]
    if op == VcsOp.STATUS_PORCELAIN:
        return ["status", "--porcelain"]
    if op == VcsOp.WORKTREE_LIST:
        return ["worktree", "list"]
    if op == VcsOp.BRANCH_LIST:
        return ["branch"]
    if op == VcsOp.CURRENT_BRANCH:
        return ["branch", "--show-current"]
    raise ValueError(f"Unsupported VCS operation: {op}")


# Per-service binary and argv builder; a new service registers here.
SERVICE_COMMANDS = {
    Service.GIT: ("git", git_args),
}


class SubprocessDriver:
    """Runs VCS operations as child processes."""

    def run(
        self, op: VcsOp, repo: RepoRecord, path: str = "", branch: str = ""
    ) -> InvocationResult:
        binary, build_args = SERVICE_COMMANDS[repo.service]
        argv = [binary, *build_args(op, repo, branch)]
        # Clone runs from the current directory; everything else inside the repo
        cwd = None if op == VcsOp.CLONE or not path else path
        logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd or ".")

        try:
            result = subprocess.run(argv, cwd=cwd, capture_output=True, check=False)
        except OSError as e:
            raise SpawnError(f"Failed to run {binary}: {e}") from e

        logger.debug("%s exited with %d", binary, result.returncode)
        return InvocationResult(
            exit_success=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
        )
