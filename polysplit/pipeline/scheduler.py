"""Bounded parallel execution of per-file split jobs.

Key responsibilities:
- Consume the lazily discovered input files (single pass)
- Admit at most `workers` files at a time; discovery blocks on a semaphore
  while the pool is full
- Per file: plan (JobPlanner), then split (FFmpegAdapter) or, in dry-run,
  record the intended writes
- Aggregate outcomes in a thread-safe RunResult
- Abort admission on ChannelCountMismatch, let running files drain, then
  re-raise the mismatch
"""

import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

from polysplit.domain.errors import ChannelCountMismatch, ExternalEngineFailure, ProbeError
from polysplit.domain.events import (
    JobCancelled,
    JobCompleted,
    JobFailed,
    JobSkipped,
    JobStarted,
    RunAborted,
)
from polysplit.domain.models import AudioFile
from polysplit.infrastructure.event_bus import EventBus
from polysplit.infrastructure.ffmpeg import FFmpegAdapter
from polysplit.infrastructure.filesystem import FileSystemActions
from polysplit.pipeline.job_planner import JobPlanner
from polysplit.pipeline.results import RunResult


class WorkScheduler:
    """Runs one unit of work per input file under a hard concurrency ceiling.

    Args:
        planner: JobPlanner computing each file's missing outputs.
        executor: FFmpegAdapter (anything with `split(plan)`).
        fs: Filesystem gate; its dry_run flag switches execution to recording.
        event_bus: EventBus receiving per-file lifecycle events.
        workers: Maximum number of files processed at the same time.
        case_insensitive_outputs: Output root ignores case, so stems that
            differ only in case write the same files.
    """

    def __init__(
        self,
        planner: JobPlanner,
        executor: FFmpegAdapter,
        fs: FileSystemActions,
        event_bus: EventBus,
        workers: int = 1,
        case_insensitive_outputs: bool = False,
    ):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.planner = planner
        self.executor = executor
        self.fs = fs
        self.event_bus = event_bus
        self.workers = workers
        self.case_insensitive_outputs = case_insensitive_outputs
        self.logger = logging.getLogger(__name__)

        self._abort_event = threading.Event()
        self._fatal: Optional[BaseException] = None
        self._fatal_lock = threading.Lock()

        self._active = 0
        self._peak_active = 0
        self._active_lock = threading.Lock()

        self._claimed_stems: Dict[str, Path] = {}

        # Only futures that have not finished yet
        self._in_flight: Dict[concurrent.futures.Future, AudioFile] = {}
        self._in_flight_lock = threading.Lock()

    @property
    def in_flight_count(self) -> int:
        with self._in_flight_lock:
            return len(self._in_flight)

    @property
    def peak_active(self) -> int:
        """Highest number of files that were processed simultaneously."""
        with self._active_lock:
            return self._peak_active

    @property
    def aborted(self) -> bool:
        return self._abort_event.is_set()

    def _enter(self):
        with self._active_lock:
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)

    def _leave(self):
        with self._active_lock:
            self._active -= 1

    def _abort(self, error: BaseException):
        with self._fatal_lock:
            first = self._fatal is None
            if first:
                self._fatal = error
                self._abort_event.set()
        if first:
            self.logger.error(f"RUN_ABORTED: {error} (no new files will be started)")
            self.event_bus.publish(RunAborted(reason=str(error)))

    def _claim_stem(self, audio_file: AudioFile) -> Optional[Path]:
        """Returns the earlier file owning this stem, or None after claiming it."""
        key = audio_file.stem.casefold() if self.case_insensitive_outputs else audio_file.stem
        owner = self._claimed_stems.get(key)
        if owner is not None:
            return owner
        self._claimed_stems[key] = audio_file.path
        return None

    def _fail(self, result: RunResult, audio_file: AudioFile, message: str):
        result.record_failed(audio_file.path, message)
        self.event_bus.publish(JobFailed(source=audio_file, error_message=message))

    def _cancel(self, result: RunResult, audio_file: AudioFile):
        result.record_cancelled()
        self.logger.info(f"CANCELLED: {audio_file.path.name}")
        self.event_bus.publish(JobCancelled(source=audio_file))

    def _process_file(self, audio_file: AudioFile, result: RunResult):
        filename = audio_file.path.name
        if self._abort_event.is_set():
            self._cancel(result, audio_file)
            return

        self._enter()
        try:
            plan = self.planner.plan(audio_file)

            if plan.is_empty:
                result.record_skipped()
                self.logger.info(f"[{audio_file.stem}] nothing to do.")
                self.event_bus.publish(JobSkipped(source=audio_file, satisfied=len(plan.satisfied)))
                return

            result.record_planned()
            self.fs.make_dirs(plan.output_dir)

            if self.fs.dry_run:
                for out in plan.outputs:
                    self.fs.record("would write", out.path, plan.encoding.value)
                self.fs.record("ffmpeg (pan split)", plan.output_dir, f"{filename}, {len(plan.outputs)} outputs")
            else:
                self.event_bus.publish(JobStarted(source=audio_file, plan=plan))
                self.executor.split(plan)

            result.record_completed()
            self.event_bus.publish(JobCompleted(
                source=audio_file,
                outputs=len(plan.outputs),
                encoding=plan.encoding,
                output_dir=plan.output_dir,
                dry_run=self.fs.dry_run,
            ))

        except ChannelCountMismatch as e:
            self._abort(e)
            self._fail(result, audio_file, str(e))
        except (ProbeError, ExternalEngineFailure) as e:
            self.logger.error(f"FAILED: {filename}: {e}")
            self._fail(result, audio_file, str(e))
        except Exception as e:
            # Log exception but keep the other files going
            self.logger.exception(f"Exception processing {filename}: {e}")
            self._fail(result, audio_file, f"Exception: {e}")
        finally:
            self._leave()

    def run(self, files: Iterable[AudioFile]) -> RunResult:
        """Processes every file; raises ChannelCountMismatch after draining if one occurred."""
        result = RunResult(dry_run=self.fs.dry_run)
        slots = threading.BoundedSemaphore(self.workers)

        def on_done(future: concurrent.futures.Future):
            with self._in_flight_lock:
                audio_file = self._in_flight.pop(future, None)
            slots.release()
            if future.cancelled() and audio_file is not None:
                self._cancel(result, audio_file)

        self.logger.info(f"Scheduling started: workers={self.workers}, dry_run={self.fs.dry_run}")

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="polysplit"
        ) as pool:
            try:
                for audio_file in files:
                    result.record_discovered()
                    if self._abort_event.is_set():
                        self._cancel(result, audio_file)
                        break

                    owner = self._claim_stem(audio_file)
                    if owner is not None:
                        message = f"Output names collide with {owner} (same file name stem)"
                        self.logger.error(f"FAILED: {audio_file.path.name}: {message}")
                        self._fail(result, audio_file, message)
                        continue

                    # Blocking admission: wait for a free slot
                    slots.acquire()
                    if self._abort_event.is_set():
                        slots.release()
                        self._cancel(result, audio_file)
                        break

                    future = pool.submit(self._process_file, audio_file, result)
                    with self._in_flight_lock:
                        self._in_flight[future] = audio_file
                    future.add_done_callback(on_done)

            except KeyboardInterrupt:
                self.logger.info("Ctrl+C detected - cancelling files that have not started...")
                self._abort_event.set()
                with self._in_flight_lock:
                    pending = list(self._in_flight)
                for future in pending:
                    future.cancel()
                raise
            # Leaving the pool waits for every in-flight file

        finished = result.finalize()
        self.logger.info(
            f"Run finished: discovered={finished.discovered} planned={finished.planned} "
            f"completed={finished.completed} skipped={finished.skipped} "
            f"failed={finished.failed} cancelled={finished.cancelled}"
        )
        self.event_bus.publish(finished)

        if self._fatal is not None:
            raise self._fatal
        return result
