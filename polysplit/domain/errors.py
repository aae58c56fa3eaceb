from pathlib import Path
from typing import Optional


class PolySplitError(RuntimeError):
    """Base error type."""


class ConfigError(PolySplitError):
    """Invalid arguments, config file, label file or missing external tools."""


class ConfirmationRequiredError(PolySplitError):
    """Destructive overwrite was not confirmed."""


class InvariantViolation(PolySplitError):
    """A safety invariant was about to be broken (e.g. deleting '/')."""


class ProbeError(PolySplitError):
    """ffprobe could not determine the audio facts of one input file."""


class ChannelCountMismatch(PolySplitError):
    """Label count disagrees with the probed channel count of an input file.

    Fatal for the whole run: the label file is presumed wrong for every
    remaining file as well.
    """

    def __init__(self, expected: int, actual: int, path: Path):
        self.expected = expected
        self.actual = actual
        self.path = Path(path)
        super().__init__(
            f"Channel name count ({expected}) != source channels ({actual}) for: {self.path.name}"
        )


class ExternalEngineFailure(PolySplitError):
    """ffmpeg exited with failure while splitting one input file."""

    def __init__(self, path: Path, returncode: Optional[int], detail: str = ""):
        self.path = Path(path)
        self.returncode = returncode
        self.detail = detail
        message = f"ffmpeg exited with code {returncode} for: {self.path.name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
