"""Prerelease mode, persisted in .changeset/pre.json.

States are Stable and Prerelease(tag). ``enter`` snapshots every managed
package's version; those initial versions are the baseline for all
prerelease version strings until ``exit``.

Every write goes through ``PrereleaseStore.transition``: an exclusive file
lock is taken, the state is re-read from disk, the update function is
applied, and the result is written atomically (temp file + rename). A
missing or corrupt state file always reads as Stable.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .errors import InvalidPrereleaseTag, InvalidPrereleaseTransition
from .fsutil import atomic_write_text
from .models import BumpLevel, PackageInfo, PrereleaseState, VersionBumpDecision
from .shell import warn

VALID_TAGS = ("alpha", "beta", "rc", "next", "canary")
STATE_FILE = "pre.json"


class TransitionResult(BaseModel):
    """Outcome of enter/exit. ``changed`` is False for informational no-ops."""

    changed: bool
    message: str
    state: PrereleaseState


def validate_tag(tag: str) -> str:
    if tag not in VALID_TAGS:
        raise InvalidPrereleaseTag(
            f"Invalid prerelease tag: {tag}. Valid tags: {', '.join(VALID_TAGS)}"
        )
    return tag


class PrereleaseStore:
    """Read and transition the persisted prerelease state."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock_path = self.path.with_name(f".{self.path.name}.lock")

    def read(self) -> PrereleaseState:
        """Current state; never raises.

        A missing file is the normal Stable starting point. An unreadable
        or invalid file is reported with a warning and also read as Stable.
        """
        try:
            text = self.path.read_text()
        except FileNotFoundError:
            return PrereleaseState()
        except OSError as exc:
            warn(f"cannot read {self.path}: {exc}; assuming stable")
            return PrereleaseState()

        try:
            state = PrereleaseState.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            warn(f"ignoring invalid {self.path.name}: {exc.__class__.__name__}")
            return PrereleaseState()

        if state.mode == "pre" and state.tag not in VALID_TAGS:
            warn(f"ignoring unknown prerelease tag {state.tag!r} in {self.path.name}")
            return PrereleaseState()
        if not state.active:
            return PrereleaseState()
        return state

    status = read

    def _write(self, state: PrereleaseState) -> None:
        data = state.model_dump(mode="json", by_alias=True)
        atomic_write_text(self.path, json.dumps(data, indent=2) + "\n")

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "w") as lock_fd:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)

    def transition(
        self, update: Callable[[PrereleaseState], PrereleaseState | None]
    ) -> PrereleaseState:
        """Apply ``update`` to the on-disk state under an exclusive lock.

        ``update`` receives the freshly read state and returns the new
        state, or None to leave the file untouched. Exceptions raised by
        ``update`` propagate and nothing is written.
        """
        with self._locked():
            current = self.read()
            new = update(current)
            if new is None or new == current:
                return current
            self._write(new)
            return new

    def enter(self, tag: str, packages: Mapping[str, PackageInfo]) -> TransitionResult:
        """Enter prerelease mode with ``tag``.

        Raises:
            InvalidPrereleaseTag: If ``tag`` is not an allowed tag; checked
                before the state is looked at.
            InvalidPrereleaseTransition: If already in prerelease mode. The
                persisted state is left unchanged.
        """
        validate_tag(tag)

        def update(current: PrereleaseState) -> PrereleaseState:
            if current.active:
                raise InvalidPrereleaseTransition(
                    f"Already in prerelease mode: {current.tag}. "
                    "Exit the current mode first."
                )
            return PrereleaseState(
                mode="pre",
                tag=tag,
                initial_versions={name: pkg.version for name, pkg in packages.items()},
            )

        state = self.transition(update)
        return TransitionResult(
            changed=True,
            message=f"Entered prerelease mode: {tag}. "
            f"Future versions will be X.Y.Z-{tag}.N",
            state=state,
        )

    def exit(self) -> TransitionResult:
        """Leave prerelease mode; a no-op with a message when already stable."""
        was_active = False

        def update(current: PrereleaseState) -> PrereleaseState | None:
            nonlocal was_active
            if not current.active:
                return None
            was_active = True
            return PrereleaseState()

        state = self.transition(update)
        if not was_active:
            return TransitionResult(
                changed=False, message="Not in prerelease mode.", state=state
            )
        return TransitionResult(
            changed=True,
            message="Exited prerelease mode. Future versions will be stable (X.Y.Z)",
            state=state,
        )

    def record(
        self, decisions: Iterable[VersionBumpDecision], changeset_keys: Iterable[str]
    ) -> PrereleaseState:
        """Advance the window after prerelease versions have been applied.

        Each released package's counter moves to the next number and its
        strongest bump in the window is remembered. A package first released
        after ``enter`` keeps the version it was released from as its
        baseline. Consumed changeset keys are added to the window's list.
        Does nothing while stable.
        """
        decisions = list(decisions)
        keys = list(changeset_keys)
        return self.transition(lambda current: advance(current, decisions, keys))


def advance(
    state: PrereleaseState,
    decisions: Iterable[VersionBumpDecision],
    changeset_keys: Iterable[str] = (),
) -> PrereleaseState | None:
    """Pure version of PrereleaseStore.record; None while stable."""
    if not state.active:
        return None
    counters = dict(state.counters)
    bumps = dict(state.bumps)
    initial_versions = dict(state.initial_versions)
    for decision in decisions:
        # Packages added after enter get their baseline on first release.
        initial_versions.setdefault(decision.package, decision.old_version)
        counters[decision.package] = counters.get(decision.package, 0) + 1
        bumps[decision.package] = bumps.get(decision.package, BumpLevel.NONE).join(
            decision.bump
        )
    changesets = list(dict.fromkeys([*state.changesets, *changeset_keys]))
    return state.model_copy(
        update={
            "initial_versions": initial_versions,
            "counters": counters,
            "bumps": bumps,
            "changesets": changesets,
        }
    )
