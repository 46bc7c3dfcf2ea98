"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from changeset_release.errors import AuthUnavailable, ExternalToolError, NothingToCommit
from changeset_release.models import Commit, PackageInfo
from changeset_release.commits import classify


def write_package(root: Path, rel_path: str, name: str, version: str) -> Path:
    """Create a package directory with a minimal pyproject.toml."""
    pkg_dir = root / rel_path
    pkg_dir.mkdir(parents=True, exist_ok=True)
    (pkg_dir / "pyproject.toml").write_text(
        f'[project]\nname = "{name}"\nversion = "{version}"\n'
    )
    return pkg_dir


class FakeVCS:
    """In-memory VersionControlPort."""

    def __init__(
        self,
        branch: str = "main",
        subjects: list[str] | None = None,
        changed: list[str] | None = None,
    ) -> None:
        self.branch = branch
        self.commits: list[Commit] = [
            classify(s, f"sha{i}") for i, s in enumerate(subjects or [])
        ]
        self.changed = list(changed or [])
        self.tags: list[str] = []
        self.commit_messages: list[str] = []
        self.pushes: list[str] = []
        self.dirty = True
        self.fail_tag: set[str] = set()
        self.fail_push = False
        self.fail_commit = False

    def current_branch(self) -> str:
        return self.branch

    def changed_files(self, base: str) -> list[str]:
        return list(self.changed)

    def commits_since(self, base: str) -> list[Commit]:
        return list(self.commits)

    def tag_exists(self, tag: str) -> bool:
        return tag in self.tags

    def create_tag(self, tag: str) -> bool:
        if tag in self.fail_tag:
            raise ExternalToolError(["git", "tag", tag], 128, "fatal: bad object")
        if self.tag_exists(tag):
            return False
        self.tags.append(tag)
        return True

    def commit_all(self, message: str) -> None:
        if self.fail_commit:
            raise ExternalToolError(["git", "commit"], 1, "hook rejected commit")
        if not self.dirty:
            raise NothingToCommit(["git", "commit"], 1, "nothing to commit, working tree clean")
        self.commit_messages.append(message)
        self.dirty = False

    def push(self, remote: str) -> None:
        if self.fail_push:
            raise ExternalToolError(["git", "push"], 1, "rejected")
        self.pushes.append(remote)


class FakeHosting:
    """In-memory HostingPort; packages in ``unauthorized`` raise AuthUnavailable."""

    def __init__(self, authenticated: bool = True, unauthorized: set[str] | None = None) -> None:
        self.authenticated = authenticated
        self.unauthorized = set(unauthorized or ())
        self.releases: dict[str, dict] = {}
        self.existing: set[str] = set()

    def is_authenticated(self) -> bool:
        return self.authenticated

    def release_exists(self, tag: str) -> bool:
        return tag in self.existing

    def create_release(self, tag: str, title: str, body: str, prerelease: bool = False) -> str:
        package = tag.split("@", 1)[0]
        if package in self.unauthorized:
            raise AuthUnavailable(f"no credentials for {package}")
        self.releases[tag] = {"title": title, "body": body, "prerelease": prerelease}
        return f"https://github.com/acme/mono/releases/tag/{tag}"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with packages/ui at 1.4.2 and packages/utils at 0.3.0."""
    (tmp_path / ".changeset").mkdir()
    write_package(tmp_path, "packages/ui", "ui", "1.4.2")
    write_package(tmp_path, "packages/utils", "utils", "0.3.0")
    return tmp_path


@pytest.fixture
def packages() -> dict[str, PackageInfo]:
    """PackageInfo for the ``workspace`` fixture's packages."""
    return {
        "ui": PackageInfo(name="ui", path="packages/ui", version="1.4.2"),
        "utils": PackageInfo(name="utils", path="packages/utils", version="0.3.0"),
    }


@pytest.fixture
def fake_vcs() -> FakeVCS:
    return FakeVCS()


@pytest.fixture
def fake_hosting() -> FakeHosting:
    return FakeHosting()


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[tool.changeset-release]
roots = ["packages", "libs"]
base-branch = "develop"
"""
    return tomlkit.parse(content)
