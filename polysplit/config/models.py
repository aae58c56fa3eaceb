import os
from pathlib import Path
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

from polysplit.domain.models import LayoutMode, ReconcileMode
from polysplit.infrastructure.file_scanner import DEFAULT_EXTENSIONS
from polysplit.infrastructure.logging import DEFAULT_LOG_PATH
from polysplit.pipeline.naming import DEFAULT_PAD_WIDTH

MAX_AUTO_WORKERS = 8


def default_worker_count(cpu_count: Optional[int] = None) -> int:
    """Half the logical CPUs, clamped to 1..8."""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 2)
    return max(1, min(MAX_AUTO_WORKERS, cpus // 2))


def normalize_layout(value: Optional[str]) -> Tuple[LayoutMode, bool]:
    """Returns (layout, fell_back). Unknown values fall back to flat."""
    if value is None:
        return LayoutMode.FLAT, False
    try:
        return LayoutMode(str(value).strip().lower()), False
    except ValueError:
        return LayoutMode.FLAT, True


def parse_mode(value: str) -> ReconcileMode:
    """Parses a reconciliation mode; raises ValueError listing valid choices."""
    try:
        return ReconcileMode(str(value).strip().lower())
    except ValueError:
        choices = "|".join(m.value for m in ReconcileMode)
        raise ValueError(f"Invalid --mode: {value} (use {choices})") from None


class PathsConfig(BaseModel):
    src: Optional[Path] = None
    out: Optional[Path] = None
    channels: Optional[Path] = None


class GeneralConfig(BaseModel):
    layout: str = LayoutMode.FLAT.value  # normalized later, unknown -> flat with a warning
    mode: ReconcileMode = ReconcileMode.NEW
    workers: Optional[int] = Field(default=None, ge=1)  # None (or 0) -> auto
    pad_width: int = Field(default=DEFAULT_PAD_WIDTH, ge=1, le=6)
    assume_yes: bool = False
    dry_run: bool = False
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    ffmpeg_loglevel: str = "info"
    log_path: Path = DEFAULT_LOG_PATH
    debug: bool = False

    @field_validator('mode', mode='before')
    @classmethod
    def validate_mode(cls, v):
        if isinstance(v, ReconcileMode):
            return v
        return parse_mode(v)

    @field_validator('workers', mode='before')
    @classmethod
    def zero_workers_means_auto(cls, v):
        if v == 0:
            return None
        return v

    @field_validator('extensions')
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith('.') else f'.{ext}')
        if not normalized:
            raise ValueError("extensions must not be empty")
        return normalized

    @property
    def effective_workers(self) -> int:
        return self.workers if self.workers is not None else default_worker_count()


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
