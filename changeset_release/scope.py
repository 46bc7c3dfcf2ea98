"""Mapping commits and changed files to managed packages.

Two strategies are applied in order:

1. Scope-token match: ``feat(ui): ...`` belongs to the package whose
   directory (directly under a managed root) is named ``ui``.
2. File-path fallback: a package with changed files but no scoped commit
   receives the unscoped commits of the same range, since scopes are a
   convention and must not silently drop user-facing changes.

Files outside every package directory resolve to the synthetic ``repo``
scope and never to a package.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import PurePosixPath

from .commits import conventional_only
from .models import Attribution, Commit, PackageInfo

REPO_SCOPE = "repo"


class ScopeResolver:
    """Resolve scopes and paths against a fixed set of packages."""

    def __init__(self, packages: Mapping[str, PackageInfo], roots: Sequence[str]):
        self.packages = dict(packages)
        self.roots = tuple(roots)
        self._by_scope: dict[str, list[PackageInfo]] = {}
        for pkg in self.packages.values():
            scope = self.scope_for_path(pkg.path)
            if scope != REPO_SCOPE:
                self._by_scope.setdefault(scope, []).append(pkg)

    def scope_for_path(self, path: str) -> str:
        """Directory name under a managed root, or "repo".

        Examples:
            "packages/ui/src/button.py" → "ui"
            "README.md" → "repo"
        """
        parts = PurePosixPath(path).parts
        if len(parts) >= 2 and parts[0] in self.roots:
            return parts[1]
        return REPO_SCOPE

    def package_for_scope(self, scope: str | None) -> PackageInfo | None:
        """Look up the single package whose directory name equals ``scope``.

        Returns None when nothing (or more than one package) matches; an
        unresolved scope simply contributes to no package.
        """
        if not scope:
            return None
        matches = self._by_scope.get(scope, [])
        return matches[0] if len(matches) == 1 else None

    def package_for_path(self, path: str) -> PackageInfo | None:
        """Package whose directory contains ``path``, if any."""
        for pkg in self.packages.values():
            prefix = pkg.path.rstrip("/")
            if path == prefix or path.startswith(prefix + "/"):
                return pkg
        return None

    def scope_for_file(self, path: str) -> str:
        """Scope of a changed file: its package's directory name or "repo"."""
        pkg = self.package_for_path(path)
        return self.scope_for_path(pkg.path) if pkg else REPO_SCOPE

    def attribute(
        self, commits: Iterable[Commit], changed_files: Iterable[str] = ()
    ) -> dict[str, Attribution]:
        """Group commits by the package they belong to.

        Args:
            commits: Classified commits of the range; unparseable ones are
                ignored.
            changed_files: Paths changed in the same range, relative to the
                workspace root.

        Returns:
            Map of package name to Attribution, in name order. Attributions
            created by the file-path fallback have ``fallback=True``.
        """
        conventional = conventional_only(commits)
        result: dict[str, Attribution] = {}

        for commit in conventional:
            pkg = self.package_for_scope(commit.scope)
            if pkg is None:
                continue
            if pkg.name not in result:
                result[pkg.name] = Attribution(package=pkg.name, scope=commit.scope)
            result[pkg.name].commits.append(commit)

        unscoped = [c for c in conventional if not c.scope]
        if unscoped:
            for path in changed_files:
                pkg = self.package_for_path(path)
                if pkg is None or pkg.name in result:
                    continue
                result[pkg.name] = Attribution(
                    package=pkg.name,
                    scope=self.scope_for_path(pkg.path),
                    commits=list(unscoped),
                    fallback=True,
                )

        return dict(sorted(result.items()))
