"""CHANGELOG.md generation and parsing.

Each released version gets a section at the top of the package's
CHANGELOG.md::

    # ui

    ## 1.5.0 - 2026-10-19

    ### Minor Changes

    - Added dark mode

    PROD-123
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from .models import BumpLevel, Changeset

ISSUE_KEY = re.compile(r"\b([A-Z][A-Z0-9]*-\d+)\b")
_VERSION_HEADER = re.compile(
    r"^## \[?(\d+\.\d+\.\d+(?:-[0-9A-Za-z.]+)?)\]?(.*)$", re.MULTILINE
)
_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_PACKAGE_HEADING = re.compile(r"^\*\*(.+?)\*\*\s*$")

BUMP_HEADINGS = {
    BumpLevel.MAJOR: "Major Changes",
    BumpLevel.MINOR: "Minor Changes",
    BumpLevel.PATCH: "Patch Changes",
}


class ChangelogEntry(BaseModel):
    """The most recent version section of a CHANGELOG.md."""

    version: str
    date: str | None = None
    content: str
    issues: list[str] = Field(default_factory=list)


def extract_issue_keys(text: str) -> list[str]:
    """Issue keys such as PROD-123, unique and in order of appearance."""
    return list(dict.fromkeys(ISSUE_KEY.findall(text)))


def link_issues(content: str, url_template: str | None) -> str:
    """Turn bare issue keys into markdown links using ``url_template``.

    Keys already inside a markdown link are left alone.
    """
    if not url_template:
        return content
    return re.sub(
        r"(?<!\[)\b([A-Z][A-Z0-9]*-\d+)\b(?!\])",
        lambda m: f"[{m.group(1)}]({url_template.format(key=m.group(1))})",
        content,
    )


def package_notes(body: str, package: str) -> str:
    """The part of a changeset body that concerns ``package``.

    Bodies written for several packages use ``**name**`` paragraphs; only
    the matching paragraph is kept, followed by any trailing issue-key
    paragraph. Bodies without per-package headings apply as a whole.
    """
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", body.strip()) if p.strip()]
    sections: dict[str, str] = {}
    trailing: list[str] = []
    for paragraph in paragraphs:
        first, _, rest = paragraph.partition("\n")
        heading = _PACKAGE_HEADING.match(first.strip())
        if heading:
            sections[heading.group(1).strip()] = rest.strip()
        elif sections and ISSUE_KEY.fullmatch(paragraph):
            trailing.append(paragraph)

    if not sections:
        return body.strip()
    notes = sections.get(package)
    if notes is None:
        return ""
    return "\n\n".join([notes, *trailing]).strip()


def _as_bullet(notes: str) -> str:
    lines = notes.splitlines()
    if not lines:
        return ""
    if lines[0].startswith("- "):
        return notes
    return "\n".join([f"- {lines[0]}", *(f"  {line}" if line else "" for line in lines[1:])])


def render_entry(
    package: str,
    version: str,
    bump: BumpLevel,
    changesets: Sequence[Changeset],
    today: date | None = None,
) -> str:
    """Build the CHANGELOG.md section for one released version."""
    today = today or date.today()
    bullets = [
        _as_bullet(notes)
        for notes in (package_notes(c.body, package) for c in changesets)
        if notes
    ]
    heading = BUMP_HEADINGS.get(bump, "Changes")
    lines = [f"## {version} - {today.isoformat()}", "", f"### {heading}", ""]
    lines.extend(bullets or [f"- Release {package} v{version}"])
    return "\n".join(lines).rstrip() + "\n"


def prepend_entry(path: Path, package: str, entry: str) -> None:
    """Insert ``entry`` above the newest version section of ``path``."""
    if path.exists():
        content = path.read_text()
    else:
        content = f"# {package}\n"

    match = _VERSION_HEADER.search(content)
    if match:
        head, tail = content[: match.start()], content[match.start() :]
        new_content = head.rstrip() + "\n\n" + entry + "\n" + tail
    else:
        new_content = content.rstrip() + "\n\n" + entry
    path.write_text(new_content)


def latest_entry(path: Path) -> ChangelogEntry | None:
    """Parse the newest version section, or None if there is none."""
    if not path.exists():
        return None
    content = path.read_text()
    matches = list(_VERSION_HEADER.finditer(content))
    if not matches:
        return None

    first = matches[0]
    end = matches[1].start() if len(matches) > 1 else len(content)
    body = content[first.end() : end].strip()
    date_match = _DATE.search(first.group(2))
    return ChangelogEntry(
        version=first.group(1),
        date=date_match.group(1) if date_match else None,
        content=body,
        issues=extract_issue_keys(body),
    )
