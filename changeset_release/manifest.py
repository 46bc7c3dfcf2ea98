"""Package manifests: the version in pyproject.toml and CHANGELOG.md beside it."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .changelog import ChangelogEntry, latest_entry, prepend_entry
from .errors import ManifestError
from .toml import get_project_version, load_pyproject, set_project_version

CHANGELOG_NAME = "CHANGELOG.md"


class ManifestPort(Protocol):
    """Read and write a package's version and changelog."""

    def read_version(self, package_path: str) -> str: ...

    def write_version(self, package_path: str, version: str) -> None: ...

    def prepend_changelog(self, package_path: str, package: str, entry: str) -> None: ...

    def latest_changelog(self, package_path: str) -> ChangelogEntry | None: ...


class PyprojectManifests:
    """ManifestPort backed by pyproject.toml files under a workspace root.

    Package paths are relative to ``root``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _pyproject(self, package_path: str) -> Path:
        path = self.root / package_path / "pyproject.toml"
        if not path.exists():
            raise ManifestError(f"No pyproject.toml in {package_path}")
        return path

    def read_version(self, package_path: str) -> str:
        return get_project_version(load_pyproject(self._pyproject(package_path)))

    def write_version(self, package_path: str, version: str) -> None:
        set_project_version(self._pyproject(package_path), version)

    def prepend_changelog(self, package_path: str, package: str, entry: str) -> None:
        prepend_entry(self.root / package_path / CHANGELOG_NAME, package, entry)

    def latest_changelog(self, package_path: str) -> ChangelogEntry | None:
        return latest_entry(self.root / package_path / CHANGELOG_NAME)
