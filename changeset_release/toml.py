"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import tomlkit
from packaging.utils import canonicalize_name

from .errors import ManifestError


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def set_project_version(path: Path, new_version: str) -> None:
    """Rewrite [project].version in place, keeping the rest of the file.

    Raises:
        ManifestError: If the file has no [project] table.
    """
    doc = load_pyproject(path)
    if "project" not in doc:
        raise ManifestError(f"No [project] table in {path}")
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version
    save_pyproject(path, doc)


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Return [tool.<name>] as a plain dict, or {} when absent."""
    table = doc.get("tool", {}).get(name, {})
    return cast(dict[str, Any], table.unwrap() if hasattr(table, "unwrap") else table)
