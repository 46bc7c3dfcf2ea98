"""Changeset files: durable records of pending version bumps.

One changeset per markdown file in the changeset directory::

    ---
    'ui': minor
    'utils': patch
    ---

    **ui**
    Added dark mode

    PROD-123

The header is a YAML mapping of package name to bump level. A header with
no pairs is a valid internal-only changeset. README.md and dot-files are
never changesets.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .errors import ParseError
from .fsutil import atomic_write_text
from .models import BumpLevel, Changeset
from .shell import warn

HEADER_DELIMITER = "---"
DEFAULT_KEY = "changeset"
INTERNAL_BODY = "Internal changes only"
_RELEASABLE = {BumpLevel.PATCH, BumpLevel.MINOR, BumpLevel.MAJOR}


def is_changeset_file(name: str) -> bool:
    """True for ``*.md`` files other than README.md and dot-files."""
    return (
        name.endswith(".md")
        and name.lower() != "readme.md"
        and not name.startswith(".")
    )


def split_header(text: str) -> tuple[str | None, str]:
    """Split a changeset into its header block and body.

    Returns:
        (header, body) where header is None when the file does not start
        with a ``---`` block.

    Raises:
        ParseError: If the opening ``---`` is never closed.
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != HEADER_DELIMITER:
        return None, text.strip()
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == HEADER_DELIMITER:
            header = "\n".join(lines[1:i])
            body = "\n".join(lines[i + 1 :]).strip()
            return header, body
    raise ParseError("header block is not closed with '---'")


def parse_header(header: str | None) -> dict[str, BumpLevel]:
    """Parse ``'package': bump`` pairs from a header block.

    The YAML node tree is walked directly so a package listed twice keeps
    the strongest bump instead of the last one. Pairs with a bump other
    than major/minor/patch are ignored with a warning.

    Raises:
        ParseError: If the block is not a YAML mapping of scalars.
    """
    if header is None or not header.strip():
        return {}
    try:
        node = yaml.compose(header, Loader=yaml.SafeLoader)
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid header: {exc}") from exc
    if node is None:
        return {}
    if not isinstance(node, yaml.MappingNode):
        raise ParseError("header is not a mapping of package: bump pairs")

    bumps: dict[str, BumpLevel] = {}
    for key_node, value_node in node.value:
        if not isinstance(key_node, yaml.ScalarNode) or not isinstance(
            value_node, yaml.ScalarNode
        ):
            raise ParseError("header entries must be 'package: bump' scalars")
        package = str(key_node.value).strip()
        raw_bump = str(value_node.value).strip().lower()
        try:
            level = BumpLevel(raw_bump)
        except ValueError:
            level = None
        if level not in _RELEASABLE:
            warn(f"ignoring unknown bump '{raw_bump}' for {package}")
            continue
        bumps[package] = bumps.get(package, BumpLevel.NONE).join(level)
    return bumps


def render(
    bumps: Mapping[str, BumpLevel], body: str, issue_key: str | None = None
) -> str:
    """Render a changeset file from its parts.

    NONE bumps are dropped from the header. The optional issue key is
    appended after the body.
    """
    header_lines = [
        f"'{name}': {BumpLevel(bump).value}"
        for name, bump in bumps.items()
        if BumpLevel(bump) != BumpLevel.NONE
    ]
    parts = [HEADER_DELIMITER, *header_lines, HEADER_DELIMITER, ""]
    text = "\n".join(parts) + "\n" + body.strip()
    if issue_key and issue_key not in body:
        text += f"\n\n{issue_key}"
    return text + "\n"


class ChangesetStore:
    """Changeset files in a single directory, keyed by file stem."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.md"

    def exists(self) -> bool:
        return self.directory.is_dir()

    def list_keys(self) -> list[str]:
        """Keys of all valid changeset entries, sorted.

        An empty list means no changeset exists, which is different from a
        changeset that exists with no bumps.
        """
        if not self.exists():
            return []
        return sorted(
            p.stem
            for p in self.directory.iterdir()
            if p.is_file() and is_changeset_file(p.name)
        )

    def parse(self, key: str) -> Changeset:
        """Parse an entry, raising ParseError when its header is malformed."""
        header, body = split_header(self.path_for(key).read_text())
        return Changeset(key=key, bumps=parse_header(header), body=body)

    def read(self, key: str) -> Changeset:
        """Parse an entry; a malformed header reads as empty bumps.

        Raises:
            FileNotFoundError: If no changeset with this key exists.
        """
        text = self.path_for(key).read_text()
        try:
            header, body = split_header(text)
            bumps = parse_header(header)
        except ParseError as exc:
            warn(f"{self.path_for(key).name}: {exc}; treating as empty")
            return Changeset(key=key, bumps={}, body=text.strip())
        return Changeset(key=key, bumps=bumps, body=body)

    def read_all(self) -> list[Changeset]:
        """Read every entry, logging and skipping malformed ones.

        Skipped entries are left on disk so a later release can pick them
        up once fixed.
        """
        changesets: list[Changeset] = []
        for key in self.list_keys():
            try:
                changesets.append(self.parse(key))
            except (ParseError, OSError, UnicodeDecodeError) as exc:
                warn(f"skipping changeset {key}: {exc}")
        return changesets

    def write(
        self,
        key: str,
        bumps: Mapping[str, BumpLevel],
        body: str,
        issue_key: str | None = None,
    ) -> Path:
        """Create or replace the entry for ``key``.

        Writing the same key twice leaves one file holding the latest
        content.
        """
        path = self.path_for(key)
        atomic_write_text(path, render(bumps, body, issue_key))
        return path

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    list = list_keys


class ValidationResult(BaseModel):
    """Whether the branch carries at least one changeset."""

    valid: bool
    files: list[str] = Field(default_factory=list)
    is_empty: bool = False
    message: str


def validate(store: ChangesetStore) -> ValidationResult:
    """Check that at least one changeset exists.

    ``is_empty`` is True when every changeset found is internal-only.
    """
    if not store.exists():
        return ValidationResult(
            valid=False, message=f"No {store.directory.name} directory found"
        )

    keys = store.list_keys()
    if not keys:
        return ValidationResult(valid=False, message="No changeset files found")

    all_empty = all(store.read(key).is_internal for key in keys)
    files = [store.path_for(key).name for key in keys]
    suffix = " (empty - internal changes only)" if all_empty else ""
    return ValidationResult(
        valid=True,
        files=files,
        is_empty=all_empty,
        message=f"Found {len(files)} changeset(s){suffix}",
    )
