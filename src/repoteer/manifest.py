"""Manifest loading: the declarative list of repositories repoteer manages."""

from __future__ import annotations

import logging
import os
import tomllib
from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import toml

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_RELPATH = Path(".config") / "repoteer" / "manifest.toml"


# =============================================================================
# Errors
# =============================================================================


class ManifestError(Exception):
    """Base class for manifest loading failures."""


class ManifestMissing(ManifestError):
    """No manifest could be located or read."""


class ManifestParse(ManifestError):
    """The manifest content is malformed or a record is incomplete."""


# =============================================================================
# Domain Models
# =============================================================================


class Service(StrEnum):
    """Version control services a repository can be managed with."""

    GIT = "Git"


@dataclass(frozen=True)
class RepoRecord:
    """A single repository declaration."""

    url: str
    service: Service
    path: str
    is_bare: bool = False

    @property
    def name(self) -> str:
        return Path(self.path).name or self.path

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "service": self.service.value,
            "path": self.path,
            "is_bare": self.is_bare,
        }


@dataclass(frozen=True)
class Manifest:
    """The record of which repositories should be managed."""

    repos: tuple[RepoRecord, ...]

    @classmethod
    def from_toml_str(cls, s: str) -> Manifest:
        """Parse a manifest from TOML text.

        Example::

            [[repos]]
            url = "git@github.com:testuser/testrepo.git"
            service = "Git"
            path = "/home/foo/testrepo"
        """
        try:
            data = tomllib.loads(s)
        except tomllib.TOMLDecodeError as e:
            raise ManifestParse(f"Invalid TOML: {e}") from e

        raw_repos = data.get("repos")
        if raw_repos is None:
            raise ManifestParse("Manifest has no [[repos]] entries")
        if not isinstance(raw_repos, list):
            raise ManifestParse("'repos' must be an array of tables")

        repos = tuple(_parse_record(i, raw) for i, raw in enumerate(raw_repos))
        _warn_overlapping_paths(repos)
        return cls(repos=repos)

    def to_toml(self) -> str:
        """Serialize the manifest back to TOML text."""
        repos = []
        for repo in self.repos:
            data = repo.to_dict()
            if not repo.is_bare:
                del data["is_bare"]
            repos.append(data)
        return toml.dumps({"repos": repos})


def _parse_record(index: int, raw: object) -> RepoRecord:
    if not isinstance(raw, dict):
        raise ManifestParse(f"repos[{index}]: entry must be a table")

    def required_str(key: str) -> str:
        value = raw.get(key)
        if value is None:
            raise ManifestParse(f"repos[{index}]: missing required field '{key}'")
        if not isinstance(value, str) or not value:
            raise ManifestParse(f"repos[{index}]: '{key}' must be a non-empty string")
        return value

    url = required_str("url")
    service_name = required_str("service")
    path = required_str("path")

    try:
        service = Service(service_name)
    except ValueError:
        known = ", ".join(s.value for s in Service)
        raise ManifestParse(
            f"repos[{index}]: unknown service '{service_name}' (expected one of: {known})"
        ) from None

    is_bare = raw.get("is_bare", False)
    if not isinstance(is_bare, bool):
        raise ManifestParse(f"repos[{index}]: 'is_bare' must be a boolean")

    return RepoRecord(url=url, service=service, path=path, is_bare=is_bare)


def _warn_overlapping_paths(repos: tuple[RepoRecord, ...]) -> None:
    counts = Counter(repo.path for repo in repos)
    for path, count in counts.items():
        if count > 1:
            logger.warning("Path %s is declared by %d repositories", path, count)


# =============================================================================
# Loading
# =============================================================================


def resolve_manifest_path(explicit: Path | None = None) -> Path:
    """Resolve the manifest location.

    Priority order:
    1. The explicit path (``--manifest``)
    2. $HOME/.config/repoteer/manifest.toml
    """
    if explicit is not None:
        return explicit

    home = os.environ.get("HOME")
    if not home:
        raise ManifestMissing("HOME is not set and no --manifest was given")

    default_path = Path(home) / DEFAULT_MANIFEST_RELPATH
    if not default_path.exists():
        raise ManifestMissing(f"Default manifest not found: {default_path}")
    return default_path


def load_manifest(explicit: Path | None = None) -> Manifest:
    """Locate, read and parse the manifest."""
    path = resolve_manifest_path(explicit)
    logger.debug("Loading manifest from %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestMissing(f"Cannot read manifest {path}: {e}") from e

    try:
        return Manifest.from_toml_str(text)
    except ManifestParse as e:
        raise ManifestParse(f"{path}: {e}") from e
