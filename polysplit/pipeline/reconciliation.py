"""One-shot reconciliation of the output root with a previous run.

Runs exactly once, single-threaded, before any file is scheduled. The decision
(`decide`) is pure apart from reading the filesystem; `apply` performs it
through `FileSystemActions`, so dry-run records the rename/delete/mkdir
instead of executing it while reporting the same final root.

| mode      | root exists                          | resulting root       |
|-----------|--------------------------------------|----------------------|
| new       | pick `{root}_2`, `{root}_3`, ...     | unique sibling       |
| backup    | move to `{root}__backup_{timestamp}` | requested (empty)    |
| overwrite | confirm, then delete recursively     | requested (recreated)|
| resume    | keep as-is                           | requested            |
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from polysplit.domain.errors import ConfigError, ConfirmationRequiredError
from polysplit.domain.events import ReconcileDecided
from polysplit.domain.models import ReconcileAction, ReconcileMode, ReconcilePlan
from polysplit.infrastructure.event_bus import EventBus
from polysplit.infrastructure.filesystem import FileSystemActions, ensure_safe_delete_target

CONFIRM_WORD = "DELETE"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def unique_dir(base: Path) -> Path:
    """`base` if free, else the first free `{base}_2`, `{base}_3`, ..."""
    base = Path(base)
    if not base.exists():
        return base
    n = 2
    while base.with_name(f"{base.name}_{n}").exists():
        n += 1
    return base.with_name(f"{base.name}_{n}")


def backup_dir_for(root: Path, now: datetime) -> Path:
    root = Path(root)
    return unique_dir(root.with_name(f"{root.name}__backup_{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"))


class ReconciliationPlanner:
    """Decides how an existing output root is treated, then applies it.

    Args:
        fs: Filesystem gate (dry-run aware).
        confirmation: Object with `is_interactive()` and `ask(message)`, or
            None when no interactive channel exists.
        assume_yes: Affirmative bypass for the overwrite confirmation.
        event_bus: Optional bus; receives one ReconcileDecided event.
        clock: Injectable time source for the backup timestamp.
    """

    def __init__(
        self,
        fs: FileSystemActions,
        confirmation=None,
        assume_yes: bool = False,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.fs = fs
        self.confirmation = confirmation
        self.assume_yes = assume_yes
        self.event_bus = event_bus
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def decide(self, root: Path, mode: ReconcileMode) -> ReconcilePlan:
        root = Path(root)
        mode = ReconcileMode(mode)

        if not root.exists():
            return ReconcilePlan(mode=mode, action=ReconcileAction.KEEP, requested_root=root, final_root=root)

        if mode in (ReconcileMode.OVERWRITE, ReconcileMode.RESUME) and not root.is_dir():
            raise ConfigError(f"Output path exists and is not a directory: {root}")

        if mode == ReconcileMode.NEW:
            return ReconcilePlan(
                mode=mode,
                action=ReconcileAction.RENAME_UNIQUE,
                requested_root=root,
                final_root=unique_dir(root),
            )
        if mode == ReconcileMode.BACKUP:
            return ReconcilePlan(
                mode=mode,
                action=ReconcileAction.RELOCATE,
                requested_root=root,
                final_root=root,
                backup_root=backup_dir_for(root, self.clock()),
            )
        if mode == ReconcileMode.OVERWRITE:
            return ReconcilePlan(
                mode=mode,
                action=ReconcileAction.DELETE,
                requested_root=root,
                final_root=root,
                requires_confirmation=True,
            )
        return ReconcilePlan(mode=mode, action=ReconcileAction.KEEP, requested_root=root, final_root=root)

    def confirm_delete(self, target: Path) -> None:
        """Returns when deletion is confirmed; raises ConfirmationRequiredError otherwise."""
        if self.assume_yes:
            return
        if self.confirmation is None or not self.confirmation.is_interactive():
            raise ConfirmationRequiredError(
                f"Refusing to delete '{target}' without --yes in non-interactive mode."
            )
        answer = self.confirmation.ask(
            f"About to DELETE permanently:\n  {target}\nType '{CONFIRM_WORD}' to confirm"
        )
        if answer != CONFIRM_WORD:
            raise ConfirmationRequiredError("Overwrite aborted.")

    def apply(self, plan: ReconcilePlan) -> Path:
        if plan.action == ReconcileAction.RENAME_UNIQUE:
            self.logger.info(f"RECONCILE: using new directory {plan.final_root}")
        elif plan.action == ReconcileAction.RELOCATE:
            self.logger.info(f"RECONCILE: moving existing directory to {plan.backup_root}")
            self.fs.rename(plan.requested_root, plan.backup_root)
        elif plan.action == ReconcileAction.DELETE:
            ensure_safe_delete_target(plan.requested_root)
            if plan.requires_confirmation:
                self.confirm_delete(plan.requested_root)
            self.logger.info(f"RECONCILE: deleting existing directory {plan.requested_root}")
            self.fs.remove_tree(plan.requested_root)
        else:
            self.logger.info(f"RECONCILE: keeping {plan.final_root} (mode={plan.mode.value})")

        self.fs.make_dirs(plan.final_root)
        if self.event_bus:
            self.event_bus.publish(ReconcileDecided(plan=plan, dry_run=self.fs.dry_run))
        return plan.final_root

    def reconcile(self, root: Path, mode: ReconcileMode) -> ReconcilePlan:
        """Decides and applies; returns the plan whose `final_root` the run uses."""
        plan = self.decide(root, mode)
        self.apply(plan)
        return plan
