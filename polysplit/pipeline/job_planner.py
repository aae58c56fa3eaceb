import logging
from pathlib import Path
from typing import List, Sequence

from polysplit.domain.errors import ChannelCountMismatch, ProbeError
from polysplit.domain.models import AudioFile, ChannelOutput, JobPlan, LayoutMode, ReconcileMode
from polysplit.infrastructure.ffprobe import FFprobeAdapter
from polysplit.pipeline.codec import select_codec
from polysplit.pipeline.naming import DEFAULT_PAD_WIDTH, destination_name, output_dir_for


def is_satisfied(path: Path) -> bool:
    """Resume predicate: the destination exists and is non-empty."""
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


class JobPlanner:
    """Computes, for one input file, the destinations that still need writing.

    Planning reads the filesystem (resume predicate) but never mutates it.
    """

    def __init__(
        self,
        prober: FFprobeAdapter,
        labels: Sequence[str],
        mode: ReconcileMode,
        layout: LayoutMode,
        output_root: Path,
        pad_width: int = DEFAULT_PAD_WIDTH,
    ):
        self.prober = prober
        self.labels = tuple(labels)
        self.mode = ReconcileMode(mode)
        self.layout = LayoutMode(layout)
        self.output_root = Path(output_root)
        self.pad_width = pad_width
        self.logger = logging.getLogger(__name__)

    def plan(self, audio_file: AudioFile) -> JobPlan:
        """Returns the JobPlan (possibly empty).

        Raises:
            ProbeError: the file's channel count could not be determined.
            ChannelCountMismatch: label count differs from the channel count.
        """
        facts = self.prober.probe(audio_file.path)
        if facts is None or not facts.channel_count:
            raise ProbeError(f"Cannot read channels for: {audio_file.path.name}")

        if len(self.labels) != facts.channel_count:
            raise ChannelCountMismatch(len(self.labels), facts.channel_count, audio_file.path)

        encoding = select_codec(facts.sample_format, facts.bits_per_sample)
        stem = audio_file.stem

        outputs: List[ChannelOutput] = []
        satisfied: List[ChannelOutput] = []
        for index, label in enumerate(self.labels):
            rel = destination_name(self.layout, stem, index + 1, self.pad_width, label)
            out = ChannelOutput(index=index, label=label, path=self.output_root / rel)
            if self.mode == ReconcileMode.RESUME and is_satisfied(out.path):
                satisfied.append(out)
                continue
            outputs.append(out)

        plan = JobPlan(
            source=audio_file,
            channel_count=facts.channel_count,
            encoding=encoding,
            output_dir=output_dir_for(self.layout, self.output_root, stem),
            outputs=outputs,
            satisfied=satisfied,
        )
        self.logger.debug(
            f"PLAN: {audio_file.path.name} channels={facts.channel_count} codec={encoding.value} "
            f"missing={len(outputs)} satisfied={len(satisfied)}"
        )
        return plan
