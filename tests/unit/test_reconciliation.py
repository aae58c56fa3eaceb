import pytest
from datetime import datetime
from unittest.mock import MagicMock

from conftest import StaticConfirmation
from polysplit.domain.errors import ConfigError, ConfirmationRequiredError, InvariantViolation
from polysplit.domain.events import ReconcileDecided
from polysplit.domain.models import ReconcileAction, ReconcileMode, ReconcilePlan
from polysplit.pipeline.reconciliation import ReconciliationPlanner, backup_dir_for, unique_dir

FIXED_NOW = datetime(2024, 5, 17, 21, 30, 5)


def _planner(fs, **kwargs):
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    return ReconciliationPlanner(fs, **kwargs)


def _existing_root(tmp_path):
    root = tmp_path / "OUT"
    root.mkdir()
    (root / "Song1_01_KICK.wav").write_bytes(b"old")
    return root


def test_unique_dir_appends_counter(tmp_path):
    base = tmp_path / "OUT"
    assert unique_dir(base) == base
    base.mkdir()
    assert unique_dir(base) == tmp_path / "OUT_2"
    (tmp_path / "OUT_2").mkdir()
    assert unique_dir(base) == tmp_path / "OUT_3"


def test_backup_dir_uses_timestamp(tmp_path):
    root = tmp_path / "OUT"
    assert backup_dir_for(root, FIXED_NOW) == tmp_path / "OUT__backup_20240517-213005"


@pytest.mark.parametrize("mode", list(ReconcileMode))
def test_absent_root_is_created_for_every_mode(tmp_path, fs, mode):
    root = tmp_path / "OUT"
    plan = _planner(fs).reconcile(root, mode)
    assert plan.action == ReconcileAction.KEEP
    assert plan.final_root == root
    assert root.is_dir()


def test_new_mode_picks_unique_sibling(tmp_path, fs):
    root = _existing_root(tmp_path)
    plan = _planner(fs).reconcile(root, ReconcileMode.NEW)

    assert plan.action == ReconcileAction.RENAME_UNIQUE
    assert plan.final_root == tmp_path / "OUT_2"
    assert (tmp_path / "OUT_2").is_dir()
    # Existing output untouched
    assert (root / "Song1_01_KICK.wav").read_bytes() == b"old"


def test_backup_mode_relocates_existing_root(tmp_path, fs):
    root = _existing_root(tmp_path)
    plan = _planner(fs).reconcile(root, ReconcileMode.BACKUP)

    backup = tmp_path / "OUT__backup_20240517-213005"
    assert plan.action == ReconcileAction.RELOCATE
    assert plan.backup_root == backup
    assert plan.final_root == root
    assert (backup / "Song1_01_KICK.wav").read_bytes() == b"old"
    assert root.is_dir()
    assert list(root.iterdir()) == []


def test_resume_mode_keeps_contents(tmp_path, fs):
    root = _existing_root(tmp_path)
    plan = _planner(fs).reconcile(root, ReconcileMode.RESUME)
    assert plan.action == ReconcileAction.KEEP
    assert (root / "Song1_01_KICK.wav").exists()


def test_overwrite_with_assume_yes_deletes(tmp_path, fs):
    root = _existing_root(tmp_path)
    plan = _planner(fs, assume_yes=True).reconcile(root, ReconcileMode.OVERWRITE)

    assert plan.action == ReconcileAction.DELETE
    assert root.is_dir()
    assert list(root.iterdir()) == []


def test_overwrite_with_typed_confirmation_deletes(tmp_path, fs):
    root = _existing_root(tmp_path)
    confirmation = StaticConfirmation(answer="DELETE")
    _planner(fs, confirmation=confirmation).reconcile(root, ReconcileMode.OVERWRITE)

    assert len(confirmation.questions) == 1
    assert str(root) in confirmation.questions[0]
    assert list(root.iterdir()) == []


def test_overwrite_wrong_answer_aborts(tmp_path, fs):
    root = _existing_root(tmp_path)
    confirmation = StaticConfirmation(answer="yes")
    with pytest.raises(ConfirmationRequiredError, match="Overwrite aborted"):
        _planner(fs, confirmation=confirmation).reconcile(root, ReconcileMode.OVERWRITE)
    assert (root / "Song1_01_KICK.wav").exists()


def test_overwrite_non_interactive_without_yes_refuses(tmp_path, fs):
    root = _existing_root(tmp_path)
    confirmation = StaticConfirmation(interactive=False)
    with pytest.raises(ConfirmationRequiredError, match="without --yes in non-interactive mode"):
        _planner(fs, confirmation=confirmation).reconcile(root, ReconcileMode.OVERWRITE)
    assert confirmation.questions == []
    assert (root / "Song1_01_KICK.wav").exists()


def test_overwrite_without_provider_refuses(tmp_path, fs):
    root = _existing_root(tmp_path)
    with pytest.raises(ConfirmationRequiredError):
        _planner(fs).reconcile(root, ReconcileMode.OVERWRITE)
    assert root.is_dir()


def test_overwrite_still_asks_in_dry_run(tmp_path, dry_fs):
    root = _existing_root(tmp_path)
    with pytest.raises(ConfirmationRequiredError):
        _planner(dry_fs, confirmation=StaticConfirmation(interactive=False)).reconcile(root, ReconcileMode.OVERWRITE)


def test_delete_of_unsafe_root_is_invariant_violation(fs):
    confirmation = StaticConfirmation()
    plan = ReconcilePlan(
        mode=ReconcileMode.OVERWRITE,
        action=ReconcileAction.DELETE,
        requested_root="/",
        final_root="/",
        requires_confirmation=True,
    )
    with pytest.raises(InvariantViolation):
        _planner(fs, confirmation=confirmation, assume_yes=True).apply(plan)
    # Checked before asking
    assert confirmation.questions == []


def test_existing_file_as_root_rejected_for_resume(tmp_path, fs):
    root = tmp_path / "OUT"
    root.write_text("not a dir")
    with pytest.raises(ConfigError, match="not a directory"):
        _planner(fs).decide(root, ReconcileMode.RESUME)


def test_dry_run_reports_final_root_without_mutation(tmp_path, dry_fs):
    root = _existing_root(tmp_path)

    new_plan = _planner(dry_fs).reconcile(root, ReconcileMode.NEW)
    backup_plan = _planner(dry_fs).reconcile(root, ReconcileMode.BACKUP)
    overwrite_plan = _planner(dry_fs, assume_yes=True).reconcile(root, ReconcileMode.OVERWRITE)

    assert new_plan.final_root == tmp_path / "OUT_2"
    assert backup_plan.final_root == root
    assert overwrite_plan.final_root == root
    assert not (tmp_path / "OUT_2").exists()
    assert (root / "Song1_01_KICK.wav").read_bytes() == b"old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["OUT"]
    kinds = dry_fs.reporter.kinds()
    assert "mv" in kinds
    assert "rm -rf" in kinds
    assert "mkdir -p" in kinds


def test_reconcile_publishes_decision(tmp_path, fs, event_bus):
    handler = MagicMock()
    event_bus.subscribe(ReconcileDecided, handler)
    _planner(fs, event_bus=event_bus).reconcile(tmp_path / "OUT", ReconcileMode.NEW)

    handler.assert_called_once()
    event = handler.call_args[0][0]
    assert event.plan.final_root == tmp_path / "OUT"
    assert event.dry_run is False
