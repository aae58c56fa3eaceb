import threading
from pathlib import Path
from typing import List, Tuple

from polysplit.domain.events import RunFinished


class RunResult:
    """Thread-safe aggregate of per-file outcomes for one run."""

    def __init__(self, dry_run: bool = False):
        self._lock = threading.RLock()
        self.dry_run = dry_run

        # Counters
        self.discovered = 0
        self.planned = 0     # files with a non-empty plan
        self.completed = 0
        self.skipped = 0     # nothing to do (resume)
        self.failed = 0
        self.cancelled = 0

        self.errors: List[Tuple[Path, str]] = []

    def record_discovered(self):
        with self._lock:
            self.discovered += 1

    def record_planned(self):
        with self._lock:
            self.planned += 1

    def record_completed(self):
        with self._lock:
            self.completed += 1

    def record_skipped(self):
        with self._lock:
            self.skipped += 1

    def record_failed(self, path: Path, message: str):
        with self._lock:
            self.failed += 1
            self.errors.append((Path(path), message))

    def record_cancelled(self):
        with self._lock:
            self.cancelled += 1

    @property
    def error_messages(self) -> List[str]:
        with self._lock:
            return [f"{path.name}: {message}" for path, message in self.errors]

    @property
    def ok(self) -> bool:
        with self._lock:
            return self.failed == 0 and self.cancelled == 0

    def finalize(self) -> RunFinished:
        """Freezes the counters into a RunFinished event."""
        with self._lock:
            return RunFinished(
                discovered=self.discovered,
                planned=self.planned,
                completed=self.completed,
                skipped=self.skipped,
                failed=self.failed,
                cancelled=self.cancelled,
                errors=self.error_messages,
                dry_run=self.dry_run,
            )
