"""Reconciliation, discovery, planning and scheduling wired together with test doubles."""
from datetime import datetime

import pytest

from conftest import FakeExecutor, FakeProber
from polysplit.domain.events import JobCompleted
from polysplit.domain.models import LayoutMode, ReconcileMode
from polysplit.infrastructure.event_bus import EventBus
from polysplit.infrastructure.file_scanner import FileScanner
from polysplit.infrastructure.filesystem import DryRunReporter, FileSystemActions
from polysplit.pipeline.job_planner import JobPlanner
from polysplit.pipeline.reconciliation import ReconciliationPlanner
from polysplit.pipeline.scheduler import WorkScheduler

pytestmark = pytest.mark.integration

LABELS = ["KICK", "SNARE_TOP", "OH_L"]


def _run(src, out, mode, dry_run=False, layout=LayoutMode.FLAT, workers=3, executor=None):
    bus = EventBus()
    completed = []
    bus.subscribe(JobCompleted, completed.append)
    fs = FileSystemActions(dry_run=dry_run, reporter=DryRunReporter(bus))
    reconciler = ReconciliationPlanner(fs, assume_yes=True, event_bus=bus, clock=lambda: datetime(2024, 1, 2, 3, 4, 5))
    plan = reconciler.reconcile(out, mode)
    excluded = [p for p in (plan.requested_root, plan.final_root, plan.backup_root) if p is not None]
    planner = JobPlanner(FakeProber(), LABELS, mode, layout, plan.final_root)
    scheduler = WorkScheduler(planner, executor or FakeExecutor(), fs, bus, workers=workers)
    result = scheduler.run(FileScanner(exclude_dirs=excluded).scan(src))
    return plan, result, fs.reporter, completed


def test_output_inside_source_is_not_rescanned(src_dir):
    out = src_dir / "split"
    plan, result, _, _ = _run(src_dir, out, ReconcileMode.NEW)

    assert result.discovered == 3
    # A second run into a fresh sibling must not pick up the first run's mono files
    plan2, result2, _, _ = _run(src_dir, out, ReconcileMode.NEW)
    assert plan2.final_root == src_dir / "split_2"
    assert result2.discovered == 3


def test_backup_run_moves_previous_output(tmp_path, src_dir):
    out = tmp_path / "OUT"
    _run(src_dir, out, ReconcileMode.NEW)
    plan, result, _, _ = _run(src_dir, out, ReconcileMode.BACKUP)

    backup = tmp_path / "OUT__backup_20240102-030405"
    assert plan.backup_root == backup
    assert len(list(backup.iterdir())) == 9
    assert len(list(out.iterdir())) == 9
    assert result.completed == 3


@pytest.mark.parametrize("mode", [ReconcileMode.NEW, ReconcileMode.BACKUP, ReconcileMode.OVERWRITE, ReconcileMode.RESUME])
def test_dry_run_matches_real_run_decisions(tmp_path, src_dir, mode):
    out = tmp_path / "OUT"
    out.mkdir()
    (out / "Song1_01_KICK.wav").write_bytes(b"old")
    before = sorted(str(p) for p in tmp_path.rglob("*"))

    dry_plan, dry_result, reporter, dry_completed = _run(src_dir, out, mode, dry_run=True)

    assert sorted(str(p) for p in tmp_path.rglob("*")) == before
    assert reporter.actions

    real_plan, real_result, _, real_completed = _run(src_dir, out, mode)

    assert dry_plan.final_root == real_plan.final_root
    assert dry_plan.action == real_plan.action
    assert dry_result.completed == real_result.completed
    assert sorted(e.outputs for e in dry_completed) == sorted(e.outputs for e in real_completed)


def test_many_files_with_bounded_workers(tmp_path):
    src = tmp_path / "src"
    for i in range(24):
        path = src / f"disc{i % 3}" / f"Take{i:02d}.wav"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")
    executor = FakeExecutor(delay=0.01)

    _, result, _, _ = _run(src, tmp_path / "OUT", ReconcileMode.NEW, layout=LayoutMode.FOLDERS, workers=4, executor=executor)

    assert result.completed == 24
    assert executor.peak <= 4
    assert len(list((tmp_path / "OUT").iterdir())) == 24
