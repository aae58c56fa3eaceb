from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.box import SIMPLE
from rich.markup import escape

from polysplit.domain.events import (
    DryRunAction,
    JobCancelled,
    JobCompleted,
    JobFailed,
    JobSkipped,
    ReconcileDecided,
    RunAborted,
    RunFinished,
)
from polysplit.domain.models import LayoutMode, ReconcileAction, ReconcileMode
from polysplit.infrastructure.event_bus import EventBus


class ConsoleReporter:
    """Subscribes to EventBus and prints progress lines to standard error."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console(stderr=True, highlight=False)
        self.finished: Optional[RunFinished] = None
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(ReconcileDecided, self.on_reconcile_decided)
        self.bus.subscribe(DryRunAction, self.on_dry_run_action)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobSkipped, self.on_job_skipped)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(JobCancelled, self.on_job_cancelled)
        self.bus.subscribe(RunAborted, self.on_run_aborted)
        self.bus.subscribe(RunFinished, self.on_run_finished)

    def print_header(
        self,
        src: Path,
        out: Path,
        layout: LayoutMode,
        mode: ReconcileMode,
        workers: int,
        labels: Sequence[str],
        dry_run: bool = False,
    ):
        title = "PolySplit (dry run)" if dry_run else "PolySplit"
        self.console.rule(f"[bold]{title}[/bold]")
        self.console.print(f"Source:   {escape(str(src))}")
        self.console.print(f"Output:   {escape(str(out))}")
        self.console.print(f"Layout:   {layout.value} | Mode: {mode.value} | Workers: {workers}")
        self.console.print(f"Channels: {len(labels)} ({escape(', '.join(labels))})")

    def warn(self, message: str):
        self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def on_reconcile_decided(self, event: ReconcileDecided):
        plan = event.plan
        if plan.action == ReconcileAction.RENAME_UNIQUE:
            verb = "would write" if event.dry_run else "writing"
            self.console.print(f"Output exists, {verb} to new directory: {escape(str(plan.final_root))}")
        elif plan.action == ReconcileAction.RELOCATE:
            verb = "would be moved" if event.dry_run else "moved"
            self.console.print(f"Existing output {verb} to backup: {escape(str(plan.backup_root))}")
        elif plan.action == ReconcileAction.DELETE:
            verb = "would be deleted" if event.dry_run else "deleted"
            self.console.print(f"[red]Existing output {verb}:[/red] {escape(str(plan.requested_root))}")
        elif plan.mode == ReconcileMode.RESUME and plan.requested_root == plan.final_root:
            self.console.print(f"Resuming into: {escape(str(plan.final_root))}")

    def on_dry_run_action(self, event: DryRunAction):
        detail = f" ({event.detail})" if event.detail else ""
        self.console.print(f"[cyan]{escape('[DRY-RUN]')}[/cyan] {escape(event.kind)} {escape(str(event.target))}{escape(detail)}")

    def on_job_completed(self, event: JobCompleted):
        verb = "would split" if event.dry_run else "split"
        self.console.print(
            f"[green]✓[/green] {escape(f'[{event.source.stem}]')} {verb} {event.outputs} channel(s) "
            f"as {event.encoding.value} -> {escape(str(event.output_dir))}"
        )

    def on_job_skipped(self, event: JobSkipped):
        self.console.print(f"[dim]- {escape(f'[{event.source.stem}]')} nothing to do.[/dim]")

    def on_job_failed(self, event: JobFailed):
        self.console.print(f"[red]✗[/red] {escape(f'[{event.source.path.name}]')} {escape(event.error_message)}")

    def on_job_cancelled(self, event: JobCancelled):
        self.console.print(f"[yellow]-[/yellow] {escape(f'[{event.source.path.name}]')} cancelled")

    def on_run_aborted(self, event: RunAborted):
        self.console.print(f"[bold red]Aborting:[/bold red] {escape(event.reason)}")

    def on_run_finished(self, event: RunFinished):
        self.finished = event
        table = Table(box=SIMPLE, show_header=False, title="Summary (dry run)" if event.dry_run else "Summary")
        table.add_column("metric")
        table.add_column("count", justify="right")
        table.add_row("Discovered", str(event.discovered))
        table.add_row("Split", str(event.completed))
        table.add_row("Nothing to do", str(event.skipped))
        table.add_row("Failed", str(event.failed), style="red" if event.failed else None)
        table.add_row("Cancelled", str(event.cancelled), style="yellow" if event.cancelled else None)
        self.console.print(table)
        for message in event.errors:
            self.console.print(f"[red]  {escape(message)}[/red]")
