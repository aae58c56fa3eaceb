import logging
import os
from pathlib import Path
from typing import List

from polysplit.infrastructure.ffmpeg import TEMP_SUFFIX
from polysplit.infrastructure.filesystem import FileSystemActions

class HousekeepingService:
    """Removes temporaries an interrupted ffmpeg run left in the output tree."""

    def __init__(self, fs: FileSystemActions):
        self.fs = fs
        self.logger = logging.getLogger(__name__)

    def find_temp_files(self, directory: Path) -> List[Path]:
        found: List[Path] = []
        for root, dirs, files in os.walk(directory):
            dirs.sort()
            for file in sorted(files):
                if file.endswith(TEMP_SUFFIX):
                    found.append(Path(root) / file)
        return found

    def cleanup_temp_files(self, directory: Path) -> int:
        """Recursively removes stale .tmp files; returns how many were handled."""
        removed = 0
        for path in self.find_temp_files(directory):
            try:
                self.fs.remove_file(path)
                removed += 1
            except OSError as e:
                self.logger.warning(f"Could not remove stale temp file {path}: {e}")
        if removed:
            self.logger.info(f"HOUSEKEEPING: removed {removed} stale temp files under {directory}")
        return removed
