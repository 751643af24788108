"""Read-only queries over a local working copy."""

from __future__ import annotations

import logging
from pathlib import Path

from .driver import VcsDriver, VcsOp
from .manifest import RepoRecord

logger = logging.getLogger(__name__)


class RepoInspector:
    """Queries the on-disk state of one repository through a VCS driver.

    Spawn and decode failures from the driver propagate to the caller.
    """

    def __init__(self, driver: VcsDriver, repo: RepoRecord):
        self.driver = driver
        self.repo = repo

    def _stdout(self, op: VcsOp, path: str) -> str:
        return self.driver.run(op, self.repo, path).stdout_text()

    def is_cloned(self, path: str) -> bool:
        """Check whether ``<path>/.git`` exists."""
        return (Path(path) / ".git").exists()

    def has_unstaged_changes(self, path: str) -> bool:
        """Any porcelain status output means the tree is dirty."""
        return bool(self._stdout(VcsOp.STATUS_PORCELAIN, path))

    def has_worktrees(self, path: str) -> bool:
        """Detect a bare repository with worktrees attached.

        ``git worktree list`` lists the bare directory first, annotated
        ``(bare)``.
        """
        lines = self._stdout(VcsOp.WORKTREE_LIST, path).splitlines()
        bare = bool(lines) and "(bare)" in lines[0]
        logger.debug("%s: bare with worktrees = %s", path, bare)
        return bare

    def get_branches(self, path: str) -> list[str]:
        """Local branch names, without the ``* `` / ``  `` marker column."""
        output = self._stdout(VcsOp.BRANCH_LIST, path)
        return [line[2:] for line in output.splitlines() if line]

    def get_worktrees(self, path: str) -> list[str]:
        """Branch names of checked-out worktrees."""
        branches = []
        for line in self._stdout(VcsOp.WORKTREE_LIST, path).splitlines():
            line = line.rstrip()
            if not line.endswith("]"):
                continue
            start = line.rfind("[")
            if start != -1:
                branches.append(line[start + 1 : -1])
        return branches

    def get_current_branch(self, path: str) -> str:
        """Raw output of ``branch --show-current``, trailing newline included."""
        return self._stdout(VcsOp.CURRENT_BRANCH, path)
