"""Shared fixtures: a recording VCS driver stub and manifest builders."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import NamedTuple

import pytest

from repoteer.driver import InvocationResult, VcsOp
from repoteer.manifest import Manifest, RepoRecord, Service


class Call(NamedTuple):
    op: VcsOp
    path: str
    branch: str
    url: str


def ok(stdout: str = "", stderr: str = "") -> InvocationResult:
    return InvocationResult(True, stdout.encode(), stderr.encode())


def failed(stderr: str = "error", stdout: str = "") -> InvocationResult:
    return InvocationResult(False, stdout.encode(), stderr.encode())


class RecordingDriver:
    """VCS driver stub that records every invocation.

    Responses are looked up by (op, path, branch), then (op, path), then
    (op,); anything unconfigured succeeds with empty output. A configured
    exception instance is raised instead of returned.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.responses: dict[tuple, InvocationResult | Exception] = {}
        self._lock = threading.Lock()

    def respond(self, op: VcsOp, path: str, result, branch: str | None = None) -> None:
        key = (op, path) if branch is None else (op, path, branch)
        self.responses[key] = result

    def respond_all(self, op: VcsOp, result) -> None:
        self.responses[(op,)] = result

    def run(self, op, repo, path="", branch=""):
        # Clone has no working directory; record the target path instead
        recorded_path = repo.path if op == VcsOp.CLONE else path
        with self._lock:
            self.calls.append(Call(op, recorded_path, branch, repo.url))

        for key in ((op, recorded_path, branch), (op, recorded_path), (op,)):
            if key in self.responses:
                result = self.responses[key]
                if isinstance(result, Exception):
                    raise result
                return result
        return ok()

    def ops(self, *wanted: VcsOp) -> list[Call]:
        return [c for c in self.calls if c.op in wanted]


@pytest.fixture()
def driver() -> RecordingDriver:
    return RecordingDriver()


@pytest.fixture()
def make_record(tmp_path: Path):
    """Factory: a RepoRecord under tmp_path, optionally with a .git entry."""

    def _make(name: str, *, cloned: bool = False, is_bare: bool = False) -> RepoRecord:
        path = tmp_path / name
        if cloned:
            (path / ".git").mkdir(parents=True)
        return RepoRecord(
            url=f"git@example.com:test/{name}.git",
            service=Service.GIT,
            path=str(path),
            is_bare=is_bare,
        )

    return _make


@pytest.fixture()
def write_manifest(tmp_path: Path):
    """Factory: write records to a manifest.toml and return its path."""

    def _write(*records: RepoRecord) -> Path:
        path = tmp_path / "manifest.toml"
        path.write_text(Manifest(repos=tuple(records)).to_toml())
        return path

    return _write
