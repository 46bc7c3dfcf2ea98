"""CLI entry point for changeset-release.

Command routing::

    changeset-release changeset [create]   # create is the default
    changeset-release changeset validate
    changeset-release changeset pre enter|exit|status
    changeset-release release

This is the only module that turns results into process exit codes.
"""

from __future__ import annotations

import contextlib
import json
import sys
from collections.abc import Iterator
from pathlib import Path

import click

from .changesets import ChangesetStore, validate as validate_changesets
from .config import ReleaseConfig, find_workspace_root, load_config
from .create import (
    analyze_changes,
    create_changeset,
    parse_bump_overrides,
    parse_summary_overrides,
)
from .errors import ChangesetReleaseError
from .hosting import GitHubHosting
from .manifest import PyprojectManifests
from .models import PipelineReport, PipelineStatus, ReleaseAnalysis
from .pipeline import ReleasePipeline
from .prerelease import STATE_FILE, PrereleaseStore
from .vcs import GitVersionControl
from .workspace import discover_packages


class DefaultGroup(click.Group):
    """A group that falls back to a default subcommand.

    ``changeset`` and ``changeset --dry-run`` both run ``changeset create``;
    a leading word that is not a known subcommand is still an error.
    """

    def __init__(self, *args, default_command: str, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.default_command = default_command

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if not args or (args[0].startswith("-") and args[0] not in ctx.help_option_names):
            args = [self.default_command, *args]
        return super().parse_args(ctx, args)


class Workspace:
    """Root directory and configuration shared by all commands."""

    def __init__(self, root: Path, config: ReleaseConfig) -> None:
        self.root = root
        self.config = config

    @property
    def changesets(self) -> ChangesetStore:
        return ChangesetStore(self.root / self.config.changeset_dir)

    @property
    def prerelease(self) -> PrereleaseStore:
        return PrereleaseStore(self.root / self.config.changeset_dir / STATE_FILE)

    @property
    def vcs(self) -> GitVersionControl:
        return GitVersionControl(self.root, timeout=self.config.timeout)


@contextlib.contextmanager
def user_errors() -> Iterator[None]:
    """Report library errors as a one-line message with exit code 1."""
    try:
        yield
    except ChangesetReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


pass_workspace = click.make_pass_decorator(Workspace)


@click.group()
@click.version_option(package_name="changeset-release")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Workspace root. Defaults to the nearest directory with .git or .changeset.",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None) -> None:
    """Changesets and per-package releases for Python monorepos."""
    root = root.resolve() if root else find_workspace_root()
    with user_errors():
        ctx.obj = Workspace(root, load_config(root))


# ----------------------------------------------------------------------
# changeset
# ----------------------------------------------------------------------


@cli.group(cls=DefaultGroup, default_command="create")
def changeset() -> None:
    """Create and check changesets (runs `create` when no subcommand is given)."""


@changeset.command()
@click.option("--dry-run", is_flag=True, help="Print the analysis as JSON, write nothing.")
@click.option("--skip-empty", is_flag=True, help="Don't write an internal-only changeset.")
@click.option("--bullets", "fmt", flag_value="bullets", help="Force bullet summaries.")
@click.option("--collapsed", "fmt", flag_value="collapsed", help="Force one-line summaries.")
@click.option("--bump", "bump_spec", metavar="SPEC", help='Override bumps, e.g. "ui:minor,utils:patch".')
@click.option("--summary", "summary_spec", metavar="SPEC", help='Override summaries, e.g. "ui:Added search".')
@pass_workspace
def create(
    ws: Workspace,
    dry_run: bool,
    skip_empty: bool,
    fmt: str | None,
    bump_spec: str | None,
    summary_spec: str | None,
) -> None:
    """Write a changeset for the commits on the current branch."""
    with user_errors():
        analysis = analyze_changes(ws.root, ws.config, ws.vcs)
        if dry_run:
            click.echo(analysis.to_json())
            return

        result = create_changeset(
            analysis,
            ws.changesets,
            bump_overrides=parse_bump_overrides(bump_spec),
            summary_overrides=parse_summary_overrides(summary_spec),
            fmt=fmt,
            skip_empty=skip_empty,
        )

    click.echo(result.message)
    if result.content:
        click.echo()
        click.echo(result.content, nl=False)


@changeset.command("validate")
@click.option("--quiet", is_flag=True, help="Suppress output; only set the exit code.")
@pass_workspace
def validate_command(ws: Workspace, quiet: bool) -> None:
    """Exit 0 if the branch has a changeset, 1 if it has none."""
    result = validate_changesets(ws.changesets)
    if not quiet:
        if result.valid:
            click.echo(f"✓ {result.message}")
            for name in result.files:
                click.echo(f"  - {name}")
        else:
            click.echo(f"✗ {result.message}", err=True)
            click.echo("\nTo create a changeset, run:\n  changeset-release changeset", err=True)
    if not result.valid:
        sys.exit(1)


@changeset.group()
def pre() -> None:
    """Enter, exit or inspect prerelease mode."""


@pre.command()
@click.argument("tag")
@pass_workspace
def enter(ws: Workspace, tag: str) -> None:
    """Enter prerelease mode; versions become X.Y.Z-TAG.N."""
    with user_errors():
        packages = discover_packages(ws.root, ws.config.roots, quiet=True)
        result = ws.prerelease.enter(tag, packages)
    click.echo(result.message)


@pre.command("exit")
@pass_workspace
def exit_command(ws: Workspace) -> None:
    """Leave prerelease mode; versions become stable again."""
    with user_errors():
        result = ws.prerelease.exit()
    click.echo(result.message)


@pre.command()
@pass_workspace
def status(ws: Workspace) -> None:
    """Print the prerelease state as JSON."""
    state = ws.prerelease.status()
    data = {"active": state.active, **state.model_dump(mode="json", by_alias=True)}
    click.echo(json.dumps(data, indent=2))


# ----------------------------------------------------------------------
# release
# ----------------------------------------------------------------------


def _confirm(analysis: ReleaseAnalysis) -> bool:
    click.echo("Packages to release:", err=True)
    for pkg in analysis.packages_to_release:
        click.echo(
            f"  {pkg.name}: {pkg.current_version} → {pkg.new_version} ({pkg.bump.value})",
            err=True,
        )
    if analysis.prerelease_mode:
        click.echo(f"Prerelease mode: {analysis.prerelease_mode}", err=True)
    return click.confirm("Proceed with release?", default=False, err=True)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print the release analysis as JSON, change nothing.")
@click.option("--no-push", is_flag=True, help="Don't push the release commit and tags.")
@click.option("--skip-github", is_flag=True, help="Don't create GitHub releases.")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.option("--json", "as_json", is_flag=True, help="Print the final report as JSON.")
@pass_workspace
def release(
    ws: Workspace,
    dry_run: bool,
    no_push: bool,
    skip_github: bool,
    yes: bool,
    as_json: bool,
) -> None:
    """Apply pending changesets, tag, push and publish releases."""
    if not ws.changesets.list_keys():
        click.echo("No pending changesets found. Nothing to release.")
        return

    pipeline = ReleasePipeline(
        root=ws.root,
        config=ws.config,
        vcs=ws.vcs,
        hosting=GitHubHosting(ws.root, timeout=ws.config.timeout),
        manifests=PyprojectManifests(ws.root),
        changesets=ws.changesets,
        prerelease=ws.prerelease,
    )

    if dry_run:
        with user_errors():
            click.echo(pipeline.analyze().to_json())
        return

    interactive = sys.stdin.isatty() and not yes
    report = pipeline.run(
        push=not no_push,
        publish=not skip_github,
        confirm=_confirm if interactive else None,
    )

    if as_json:
        click.echo(report.model_dump_json(indent=2))

    if report.status == PipelineStatus.CANCELLED:
        click.echo("Cancelled", err=True)
    elif report.status == PipelineStatus.NOTHING_TO_RELEASE:
        click.echo("No packages to release", err=True)
    elif report.status == PipelineStatus.FAILED:
        failure = report.failure
        where = f" ({failure.package})" if failure and failure.package else ""
        error = failure.error if failure else "unknown error"
        raise click.ClickException(f"release halted at step '{report.halted_at}'{where}: {error}")
    else:
        _print_summary(report)


def _print_summary(report: PipelineReport) -> None:
    click.echo("\n✅ Release complete!\n", err=True)
    click.echo("Released packages:", err=True)
    for decision in report.released:
        click.echo(f"  • {decision.package}@{decision.new_version}", err=True)
    if report.tags_skipped:
        click.echo(f"Tags already present: {', '.join(report.tags_skipped)}", err=True)
    if report.lock_error:
        click.echo(f"Lockfile not updated: {report.lock_error}", err=True)
    urls = [r.url for r in report.publish if r.url]
    if urls:
        click.echo("\nGitHub releases:", err=True)
        for url in urls:
            click.echo(f"  • {url}", err=True)
    for record in report.publish_failures:
        click.echo(f"  ✗ {record.package}: {record.error}", err=True)
    for name, keys in report.unknown_packages.items():
        click.echo(f"Unknown package {name} left pending in: {', '.join(keys)}", err=True)


if __name__ == "__main__":
    cli()
