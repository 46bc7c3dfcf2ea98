"""Configuration loaded from [tool.changeset-release] in the root pyproject.toml.

Example::

    [tool.changeset-release]
    roots = ["packages", "libs"]
    base-branch = "develop"
    publish-workers = 2
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .toml import get_tool_table, load_pyproject

TOOL_NAME = "changeset-release"
DEFAULT_ROOTS = ["apps", "packages", "tooling"]


class ReleaseConfig(BaseModel):
    """Settings for changeset creation and the release pipeline.

    Attributes:
        roots: Directories whose immediate subdirectories are packages.
        changeset_dir: Where changeset files and pre.json live.
        base_branch: Branch commits and diffs are measured against.
        remote: Remote that release commits and tags are pushed to.
        timeout: Seconds before any external command is abandoned.
        publish_workers: Threads used to create hosted releases.
        lock_command: Command that regenerates the lockfile.
        issue_url: URL template for issue keys in release notes, with
            {key} standing in for the key, e.g.
            "https://linear.app/acme/issue/{key}".
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    roots: list[str] = Field(default_factory=lambda: list(DEFAULT_ROOTS))
    changeset_dir: str = Field(default=".changeset", alias="changeset-dir")
    base_branch: str = Field(default="main", alias="base-branch")
    remote: str = "origin"
    timeout: float = Field(default=120.0, gt=0)
    publish_workers: int = Field(default=4, ge=1, alias="publish-workers")
    lock_command: list[str] = Field(
        default_factory=lambda: ["uv", "lock"], alias="lock-command"
    )
    issue_url: str | None = Field(default=None, alias="issue-url")


def load_config(root: Path) -> ReleaseConfig:
    """Read [tool.changeset-release] from ``root/pyproject.toml``.

    A missing pyproject.toml or missing table yields the defaults.

    Raises:
        ConfigError: If the table contains unknown keys or invalid values.
    """
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return ReleaseConfig()

    table = get_tool_table(load_pyproject(pyproject), TOOL_NAME)
    try:
        return ReleaseConfig.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.{TOOL_NAME}] in {pyproject}:\n{exc}") from exc


def find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from ``start`` to the directory holding .git or .changeset.

    Falls back to ``start`` itself when neither marker is found.
    """
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / ".git").exists() or (candidate / ".changeset").is_dir():
            return candidate
    return start
