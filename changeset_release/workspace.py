"""Workspace package discovery.

A managed package is any directory directly under one of the configured
roots (apps/, packages/, tooling/ by default) that contains a
pyproject.toml.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from .models import PackageInfo
from .shell import info, step
from .toml import get_project_name, get_project_version, load_pyproject


def discover_packages(
    root: Path, roots: Sequence[str], *, quiet: bool = False
) -> dict[str, PackageInfo]:
    """Scan the managed roots and discover all packages.

    Args:
        root: Workspace root directory.
        roots: Managed root directory names, relative to ``root``.
        quiet: Suppress the per-package listing.

    Returns:
        Map of canonical package name to PackageInfo, in name order.
    """
    if not quiet:
        step("Discovering workspace packages")

    packages: dict[str, PackageInfo] = {}
    for managed in roots:
        base = root / managed
        if not base.is_dir():
            continue
        for d in sorted(p for p in base.iterdir() if p.is_dir()):
            pyproject = d / "pyproject.toml"
            if not pyproject.exists():
                continue
            doc = load_pyproject(pyproject)
            name = get_project_name(doc, d.name)
            packages[name] = PackageInfo(
                name=name,
                path=d.relative_to(root).as_posix(),
                version=get_project_version(doc),
            )

    packages = dict(sorted(packages.items()))
    if not quiet:
        for name, pkg in packages.items():
            info(f"{name} {pkg.version} ({pkg.path})")
    return packages
