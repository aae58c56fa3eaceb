from pathlib import Path
from typing import List, Optional

from polysplit.domain.errors import ConfigError
from polysplit.pipeline.naming import sanitize_label

CHANNELS_FILENAME = "channels.txt"


def parse_channel_labels(text: str) -> List[str]:
    labels: List[str] = []
    for raw in text.split("\n"):
        line = raw.rstrip("\r")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        labels.append(sanitize_label(line))
    return labels


def load_channel_labels(path: Path) -> List[str]:
    """Reads the ordered, sanitized channel labels (one per non-comment line)."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Missing channel list: {path}")
    try:
        # utf-8-sig drops a BOM left by Windows editors
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Channel list is not valid UTF-8: {path}") from e
    return parse_channel_labels(text)


def resolve_channels_file(explicit: Optional[Path], src_dir: Optional[Path], cwd: Optional[Path] = None) -> Optional[Path]:
    """Explicit path, else ./channels.txt, else {src}/channels.txt, else None."""
    if explicit is not None:
        return Path(explicit)
    local = Path(cwd or Path.cwd()) / CHANNELS_FILENAME
    if local.is_file():
        return local
    if src_dir is not None:
        candidate = Path(src_dir) / CHANNELS_FILENAME
        if candidate.is_file():
            return candidate
    return None
