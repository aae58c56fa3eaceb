import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional
from polysplit.domain.models import AudioFile

DEFAULT_EXTENSIONS = [".wav", ".aif", ".aiff"]

class FileScanner:
    """Recursively scans for polywav candidates in a directory."""

    def __init__(self, extensions: Optional[List[str]] = None, exclude_dirs: Iterable[Path] = ()):
        exts = extensions if extensions is not None else DEFAULT_EXTENSIONS
        self.extensions = [(ext if ext.startswith(".") else f".{ext}").lower() for ext in exts]
        self.exclude_dirs = {self._key(Path(p)) for p in exclude_dirs}

    @staticmethod
    def _key(path: Path) -> str:
        return os.path.normcase(os.path.abspath(str(path)))

    def scan(self, root_dir: Path) -> Iterator[AudioFile]:
        """Lazily yields AudioFile objects (single pass, deterministic order)."""
        for root, dirs, files in os.walk(str(root_dir)):
            root_path = Path(root)

            # Never split our own output (or its backup) back into itself
            if self._key(root_path) in self.exclude_dirs:
                dirs[:] = []
                continue

            dirs[:] = sorted(d for d in dirs if self._key(root_path / d) not in self.exclude_dirs)
            files.sort()

            for file_name in files:
                file_path = root_path / file_name

                if file_path.suffix.lower() not in self.extensions:
                    continue

                try:
                    size = file_path.stat().st_size
                except OSError:
                    # Skip files we can't access
                    continue
                yield AudioFile(path=file_path, size_bytes=size)
