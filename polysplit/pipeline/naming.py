import re
from datetime import date
from pathlib import Path
from polysplit.domain.models import LayoutMode

DEFAULT_PAD_WIDTH = 2
OUTPUT_EXTENSION = ".wav"
OUTPUT_ROOT_PREFIX = "polywav_split_"

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Z0-9_+=.\-]")
_UNDERSCORES = re.compile(r"_+")


def sanitize_label(text: str) -> str:
    """Uppercase, whitespace to '_', odd characters to '_', no stray underscores."""
    label = text.upper()
    label = _WHITESPACE.sub("_", label)
    label = _DISALLOWED.sub("_", label)
    label = _UNDERSCORES.sub("_", label)
    return label.strip("_")


def destination_name(
    layout: LayoutMode,
    stem: str,
    index: int,
    pad_width: int,
    label: str,
) -> Path:
    """Output path relative to the output root; `index` is 1-based.

    flat:    Song1_01_KICK.wav
    folders: Song1/01_KICK_Song1.wav
    """
    number = f"{index:0{pad_width}d}"
    if LayoutMode(layout) == LayoutMode.FOLDERS:
        return Path(stem) / f"{number}_{label}_{stem}{OUTPUT_EXTENSION}"
    return Path(f"{stem}_{number}_{label}{OUTPUT_EXTENSION}")


def output_dir_for(layout: LayoutMode, output_root: Path, stem: str) -> Path:
    if LayoutMode(layout) == LayoutMode.FOLDERS:
        return Path(output_root) / stem
    return Path(output_root)


def default_output_root(src_dir: Path, today: date) -> Path:
    """Sibling of the source folder: {parent}/polywav_split_YYYY-MM-DD."""
    return Path(src_dir).parent / f"{OUTPUT_ROOT_PREFIX}{today.isoformat()}"
