"""Filesystem mutations with a dry-run gate.

Every directory creation, deletion, rename and file removal the pipeline
performs goes through `FileSystemActions`. When dry-run is active the action
is recorded by the `DryRunReporter` (and logged/published) instead of being
executed, so a dry run leaves the filesystem untouched while every decision
downstream stays identical to a real run.
"""

import logging
import os
import shutil
import threading
from pathlib import Path
from typing import List, Optional, Set, Union

from pydantic import BaseModel

from polysplit.domain.errors import InvariantViolation
from polysplit.domain.events import DryRunAction
from polysplit.infrastructure.event_bus import EventBus


class PlannedAction(BaseModel):
    kind: str
    target: Path
    detail: Optional[str] = None

    def describe(self) -> str:
        text = f"{self.kind} \"{self.target}\""
        return f"{text} ({self.detail})" if self.detail else text


class DryRunReporter:
    """Thread-safe record of actions that a dry run skipped."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self._actions: List[PlannedAction] = []
        self._lock = threading.Lock()

    def record(self, kind: str, target: Path, detail: Optional[str] = None) -> PlannedAction:
        action = PlannedAction(kind=kind, target=Path(target), detail=detail)
        with self._lock:
            self._actions.append(action)
        self.logger.info(f"[DRY-RUN] {action.describe()}")
        if self.event_bus:
            self.event_bus.publish(DryRunAction(kind=kind, target=action.target, detail=detail))
        return action

    @property
    def actions(self) -> List[PlannedAction]:
        with self._lock:
            return list(self._actions)

    def kinds(self) -> List[str]:
        return [action.kind for action in self.actions]


def ensure_safe_delete_target(target: Union[str, Path, None]) -> Path:
    """Returns the target as a Path or raises InvariantViolation.

    Refuses empty paths, '/', '.', and anything resolving to the filesystem
    root or the current working directory.
    """
    text = "" if target is None else str(target)
    if not text.strip():
        raise InvariantViolation("rm -rf got empty path")
    path = Path(text)
    if text.strip() == "/" or path == Path("/"):
        raise InvariantViolation("Refusing to remove /")
    if path == Path("."):
        raise InvariantViolation("Refusing to remove .")
    resolved = path.resolve()
    if resolved == Path(resolved.anchor):
        raise InvariantViolation(f"Refusing to remove filesystem root: {target}")
    if resolved == Path.cwd().resolve():
        raise InvariantViolation(f"Refusing to remove current directory: {target}")
    return path


def is_case_insensitive(path: Union[str, Path]) -> bool:
    """True when the volume holding `path` treats names differing only in case as one.

    Checked on the nearest existing ancestor whose name has cased letters, so
    it works for an output root that has not been created yet.
    """
    current = Path(path).absolute()
    for candidate in [current, *current.parents]:
        name = candidate.name
        if not candidate.exists() or name.swapcase() == name:
            continue
        twin = candidate.with_name(name.swapcase())
        return twin.exists() and os.path.samefile(candidate, twin)
    return os.path.normcase("A") == "a"


class FileSystemActions:
    """Performs (or, in dry-run, records) filesystem mutations."""

    def __init__(self, dry_run: bool = False, reporter: Optional[DryRunReporter] = None):
        self.dry_run = dry_run
        self.reporter = reporter or DryRunReporter()
        self.logger = logging.getLogger(__name__)
        self._dry_dirs: Set[Path] = set()
        self._lock = threading.Lock()

    def record(self, kind: str, target: Path, detail: Optional[str] = None) -> None:
        """Records an intended action that has no real counterpart here (e.g. a file write)."""
        self.reporter.record(kind, target, detail)

    def make_dirs(self, path: Path) -> None:
        path = Path(path)
        if not self.dry_run:
            path.mkdir(parents=True, exist_ok=True)
            return
        if path.is_dir():
            return
        with self._lock:
            if path in self._dry_dirs:
                return
            self._dry_dirs.add(path)
        self.reporter.record("mkdir -p", path)

    def remove_tree(self, target: Union[str, Path]) -> None:
        # Checked before the dry-run gate: an unsafe target is fatal either way
        path = ensure_safe_delete_target(target)
        if not path.is_dir():
            return
        if self.dry_run:
            self.reporter.record("rm -rf", path)
            return
        self.logger.info(f"DELETE: {path}")
        shutil.rmtree(path)

    def rename(self, source: Path, destination: Path) -> None:
        if self.dry_run:
            self.reporter.record("mv", Path(source), f"-> {destination}")
            return
        self.logger.info(f"RENAME: {source} -> {destination}")
        os.replace(str(source), str(destination))

    def remove_file(self, path: Path) -> None:
        if self.dry_run:
            self.reporter.record("rm", Path(path))
            return
        Path(path).unlink()
