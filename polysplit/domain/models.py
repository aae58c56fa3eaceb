from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field

class LayoutMode(str, Enum):
    FLAT = "flat"
    FOLDERS = "folders"

class ReconcileMode(str, Enum):
    BACKUP = "backup"
    OVERWRITE = "overwrite"
    NEW = "new"
    RESUME = "resume"

class ReconcileAction(str, Enum):
    KEEP = "keep"            # root absent, or resume
    RENAME_UNIQUE = "rename-unique"
    RELOCATE = "relocate"    # backup
    DELETE = "delete"        # overwrite

class EncodingSpec(str, Enum):
    PCM_S16LE = "pcm_s16le"
    PCM_S24LE = "pcm_s24le"
    PCM_S32LE = "pcm_s32le"
    PCM_F32LE = "pcm_f32le"
    PCM_F64LE = "pcm_f64le"

class AudioFile(BaseModel):
    path: Path
    size_bytes: int = 0

    @property
    def stem(self) -> str:
        return self.path.stem

class AudioFacts(BaseModel):
    channel_count: int = Field(gt=0)
    sample_format: Optional[str] = None
    bits_per_sample: Optional[int] = None

class ChannelOutput(BaseModel):
    index: int = Field(ge=0)  # 0-based source channel
    label: str
    path: Path

    @property
    def stream_label(self) -> str:
        """Name of this channel's pad inside the extraction filter graph."""
        return f"ch{self.index:02d}"

class JobPlan(BaseModel):
    source: AudioFile
    channel_count: int
    encoding: EncodingSpec
    output_dir: Path
    outputs: List[ChannelOutput] = Field(default_factory=list)
    satisfied: List[ChannelOutput] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.outputs

    @property
    def destination_paths(self) -> List[Path]:
        return [out.path for out in self.outputs]

class ReconcilePlan(BaseModel):
    mode: ReconcileMode
    action: ReconcileAction
    requested_root: Path
    final_root: Path
    backup_root: Optional[Path] = None
    requires_confirmation: bool = False
