"""
Integration tests against real git repositories in temporary directories.

Skipped when git is not installed.
"""
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from repoteer import exit_codes
from repoteer.engine import HighLevelOp, PhaseStatus
from repoteer.manifest import Manifest, RepoRecord, Service
from repoteer.runner import run_operations

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@repoteer.test",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@repoteer.test",
}


def _git(cwd: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        check=True,
        capture_output=True,
        env=GIT_ENV,
        text=True,
    )


@pytest.fixture()
def origin(tmp_path: Path) -> Path:
    """A bare 'origin' with one commit on main."""
    bare = tmp_path / "origin.git"
    _git(tmp_path, "init", "--bare", "-b", "main", str(bare))
    seed = tmp_path / "seed"
    _git(tmp_path, "init", "-b", "main", str(seed))
    (seed / "README.md").write_text("init")
    _git(seed, "add", ".")
    _git(seed, "commit", "-m", "init")
    _git(seed, "push", str(bare), "main")
    return bare


def _record(url: Path, path: Path, is_bare: bool = False) -> RepoRecord:
    return RepoRecord(url=str(url), service=Service.GIT, path=str(path), is_bare=is_bare)


class TestRealGit:
    def test_sync_clones_then_pulls_and_pushes(self, origin, tmp_path):
        manifest = Manifest(repos=(_record(origin, tmp_path / "work"),))

        first = run_operations(HighLevelOp.SYNC, manifest)
        assert [p.phase for p in first.outcomes[0].phase_results] == ["Clone", "Sync complete"]
        assert (tmp_path / "work" / ".git").is_dir()

        second = run_operations(HighLevelOp.SYNC, manifest)
        phases = second.outcomes[0].phase_results
        assert [(p.phase, p.branch) for p in phases if p.branch] == [
            ("Pull", "main"),
            ("Push", "main"),
        ]
        assert all(p.status == PhaseStatus.SUCCESS for p in phases)
        assert second.exit_code == exit_codes.SUCCESS

    def test_pull_refuses_dirty_tree(self, origin, tmp_path):
        work = tmp_path / "work"
        _git(tmp_path, "clone", str(origin), str(work))
        (work / "README.md").write_text("changed")

        report = run_operations(HighLevelOp.PULL, Manifest(repos=(_record(origin, work),)))

        (phase,) = report.outcomes[0].phase_results
        assert phase.branch == "main"
        assert report.exit_code == exit_codes.GENERAL_ERROR

    def test_pull_in_bare_worktrees(self, origin, tmp_path):
        bare = tmp_path / "bare"
        _git(tmp_path, "clone", "--bare", str(origin), str(bare))
        _git(bare, "worktree", "add", "main", "main")

        report = run_operations(
            HighLevelOp.PULL, Manifest(repos=(_record(origin, bare, is_bare=True),))
        )

        per_branch = [p for p in report.outcomes[0].phase_results if p.branch]
        assert [(p.branch, p.cwd) for p in per_branch] == [("main", str(bare / "main"))]
        assert per_branch[0].status == PhaseStatus.SUCCESS
        assert report.exit_code == exit_codes.SUCCESS

    def test_clone_into_existing_path_is_soft_failure(self, origin, tmp_path):
        work = tmp_path / "work"
        _git(tmp_path, "clone", str(origin), str(work))

        report = run_operations(HighLevelOp.CLONE, Manifest(repos=(_record(origin, work),)))

        assert not report.outcomes[0].success
        assert "already exists" in report.outcomes[0].phase_results[0].message
        assert report.exit_code == exit_codes.SUCCESS
