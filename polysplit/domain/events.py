"""Domain events for the polywav split pipeline.

Events flow through the EventBus and decouple the pipeline (reconciliation,
planning, scheduling) from the console reporter in the UI layer.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field
from .models import AudioFile, EncodingSpec, JobPlan, ReconcilePlan


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class ReconcileDecided(Event):
    """Emitted once, after the output root has been reconciled."""

    plan: ReconcilePlan
    dry_run: bool = False


class FileEvent(Event):
    """Base class for events about one input file."""

    source: AudioFile


class JobStarted(FileEvent):
    """Emitted when a planned file is handed to ffmpeg."""

    plan: JobPlan


class JobCompleted(FileEvent):
    """Emitted when every missing output of a file was written."""

    outputs: int
    encoding: EncodingSpec
    output_dir: Path
    dry_run: bool = False


class JobSkipped(FileEvent):
    """Emitted when a file has nothing left to do (resume)."""

    satisfied: int = 0


class JobFailed(FileEvent):
    """Emitted when a file could not be probed or split."""

    error_message: str


class JobCancelled(FileEvent):
    """Emitted for files admitted but never started after a fatal abort."""

    pass


class DryRunAction(Event):
    """Emitted for every mutating action that dry-run skipped."""

    kind: str
    target: Path
    detail: Optional[str] = None


class RunAborted(Event):
    """Emitted when a fatal error stops admission of new files."""

    reason: str


class RunFinished(Event):
    """Emitted after every in-flight file reached a terminal state."""

    discovered: int = 0
    planned: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: int = 0
    errors: List[str] = Field(default_factory=list)
    dry_run: bool = False
