import shutil
import threading
import time
import pytest
import yaml
from pathlib import Path
from typing import Dict, List, Optional, Union

from polysplit.domain.errors import ExternalEngineFailure
from polysplit.domain.models import AudioFacts, JobPlan
from polysplit.infrastructure.event_bus import EventBus
from polysplit.infrastructure.filesystem import DryRunReporter, FileSystemActions

# ============================================================================
# Test doubles
# ============================================================================

class StaticConfirmation:
    """Confirmation provider with a canned answer."""

    def __init__(self, answer: str = "DELETE", interactive: bool = True):
        self.answer = answer
        self.interactive = interactive
        self.questions: List[str] = []

    def is_interactive(self) -> bool:
        return self.interactive

    def ask(self, message: str) -> str:
        self.questions.append(message)
        return self.answer


class FakeProber:
    """Returns AudioFacts per file name; an Exception value is raised instead."""

    def __init__(self, default: Optional[AudioFacts] = None, per_file: Optional[Dict[str, Union[AudioFacts, Exception]]] = None):
        self.default = default or AudioFacts(channel_count=3, sample_format="s32", bits_per_sample=24)
        self.per_file = per_file or {}
        self.calls: List[Path] = []
        self._lock = threading.Lock()

    def probe(self, path: Path) -> AudioFacts:
        with self._lock:
            self.calls.append(Path(path))
        value = self.per_file.get(Path(path).name, self.default)
        if isinstance(value, Exception):
            raise value
        return value


class FakeExecutor:
    """Writes a few bytes to every planned output; tracks concurrency."""

    def __init__(self, delay: float = 0.0, fail_for: Optional[List[str]] = None):
        self.delay = delay
        self.fail_for = set(fail_for or [])
        self.plans: List[JobPlan] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    @property
    def split_sources(self) -> List[str]:
        with self._lock:
            return [plan.source.path.name for plan in self.plans]

    def split(self, plan: JobPlan) -> None:
        with self._lock:
            self.plans.append(plan)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if plan.source.path.name in self.fail_for:
                raise ExternalEngineFailure(plan.source.path, 1, "Invalid data found when processing input")
            for out in plan.outputs:
                out.path.parent.mkdir(parents=True, exist_ok=True)
                out.path.write_bytes(b"RIFF0000WAVE")
        finally:
            with self._lock:
                self.active -= 1


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()


@pytest.fixture
def fs():
    return FileSystemActions(dry_run=False)


@pytest.fixture
def dry_fs(event_bus):
    return FileSystemActions(dry_run=True, reporter=DryRunReporter(event_bus))


@pytest.fixture
def src_dir(tmp_path):
    """Creates a source folder with three polywav placeholders."""
    src = tmp_path / "session"
    src.mkdir()
    for name in ["Song1.wav", "Song2.WAV", "Song3.aif"]:
        (src / name).write_bytes(b"\x00" * 64)
    (src / "notes.txt").write_text("not audio")
    return src


@pytest.fixture
def channels_file(tmp_path):
    path = tmp_path / "channels.txt"
    path.write_text("# stage box\nKick\nSnare top\n\nOH L\n")
    return path


@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    config_data = {
        'paths': {
            'channels': str(tmp_path / 'channels.txt'),
        },
        'general': {
            'layout': 'folders',
            'mode': 'resume',
            'workers': 3,
            'pad_width': 3,
            'extensions': ['wav', '.AIFF'],
            'ffmpeg_loglevel': 'warning',
        },
    }
    config_path = tmp_path / "polysplit.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def ffmpeg_available():
    if shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None:
        pytest.skip("ffmpeg/ffprobe not available on PATH")
