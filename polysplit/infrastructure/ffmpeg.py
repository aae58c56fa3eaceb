import subprocess
import shutil
import logging
import threading
import time
from collections import deque
from pathlib import Path
from typing import List, Optional, Sequence
from polysplit.domain.errors import ExternalEngineFailure
from polysplit.domain.models import ChannelOutput, JobPlan

TEMP_SUFFIX = ".tmp"
OPTIONAL_WAV_MUXER_FLAGS = ("write_bext", "write_iXML")


def missing_tools(names: Sequence[str] = ("ffmpeg", "ffprobe")) -> List[str]:
    """Returns the external tools that are not on PATH."""
    return [name for name in names if shutil.which(name) is None]


def build_filter_complex(outputs: Sequence[ChannelOutput]) -> str:
    """One pan=mono branch per required output: [0:a]pan=mono|c0=c2[ch02];..."""
    return ";".join(
        f"[0:a]pan=mono|c0=c{out.index}[{out.stream_label}]" for out in outputs
    )


def temp_path_for(path: Path) -> Path:
    return path.with_suffix(TEMP_SUFFIX)


class FFmpegAdapter:
    """Wrapper around ffmpeg that materializes a JobPlan in one invocation."""

    def __init__(self, binary: str = "ffmpeg", loglevel: str = "info", debug: bool = False):
        self.binary = binary
        self.loglevel = loglevel
        self.debug = debug
        self.logger = logging.getLogger(__name__)
        self._muxer_opts: Optional[List[str]] = None
        self._muxer_lock = threading.Lock()

    def wav_muxer_options(self) -> List[str]:
        """Muxer flags the installed ffmpeg's wav muxer supports (probed once)."""
        with self._muxer_lock:
            if self._muxer_opts is not None:
                return list(self._muxer_opts)
            opts: List[str] = []
            try:
                res = subprocess.run(
                    [self.binary, "-hide_banner", "-h", "muxer=wav"],
                    capture_output=True,
                    text=True,
                )
                help_text = f"{res.stdout}\n{res.stderr}"
            except OSError as e:
                self.logger.warning(f"Could not query wav muxer options: {e}")
                help_text = ""
            for flag in OPTIONAL_WAV_MUXER_FLAGS:
                if flag in help_text:
                    opts.extend([f"-{flag}", "1"])
            self._muxer_opts = opts
            self.logger.debug(f"WAV_MUXER_OPTS: {' '.join(opts) or 'none'}")
            return list(opts)

    def _build_command(self, plan: JobPlan) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.binary,
            "-hide_banner",
            "-nostdin",
            "-loglevel", self.loglevel,
            "-y",  # Overwrite output files
            "-threads", "0",
            "-i", str(plan.source.path),
            "-filter_complex", build_filter_complex(plan.outputs),
        ]
        mux_opts = self.wav_muxer_options()
        for out in plan.outputs:
            cmd.extend([
                "-map", f"[{out.stream_label}]",
                "-c:a", plan.encoding.value,
                "-map_metadata", "0",
                *mux_opts,
                # .tmp does not indicate the format
                "-f", "wav",
                str(temp_path_for(out.path)),
            ])
        return cmd

    def _discard_temps(self, plan: JobPlan) -> None:
        for out in plan.outputs:
            tmp = temp_path_for(out.path)
            if tmp.exists():
                try:
                    tmp.unlink()
                except OSError as e:
                    self.logger.warning(f"Failed to cleanup temp file {tmp}: {e}")

    def split(self, plan: JobPlan) -> None:
        """Writes every output of the plan, or raises ExternalEngineFailure.

        Outputs are written to .tmp siblings and only renamed into place once
        ffmpeg succeeded, so a failed run never leaves a truncated .wav behind.
        """
        if plan.is_empty:
            return
        filename = plan.source.path.name
        start_time = time.monotonic()
        cmd = self._build_command(plan)

        self.logger.info(
            f"SPLIT_START: {filename} outputs={len(plan.outputs)} codec={plan.encoding.value}"
        )
        if self.debug:
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        tail: deque = deque(maxlen=20)
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                universal_newlines=True,
                bufsize=1,
            )
        except OSError as e:
            raise ExternalEngineFailure(plan.source.path, None, str(e)) from e

        try:
            if process.stdout:
                for line in process.stdout:
                    line = line.rstrip()
                    if line:
                        tail.append(line)
                        if self.debug:
                            self.logger.debug(f"FFMPEG[{filename}]: {line}")
            process.wait()
        except BaseException:
            process.kill()
            process.wait()
            self._discard_temps(plan)
            raise

        elapsed = time.monotonic() - start_time
        if process.returncode != 0:
            self._discard_temps(plan)
            self.logger.info(
                f"SPLIT_END: {filename} status=failed code={process.returncode} elapsed={elapsed:.2f}s"
            )
            detail = tail[-1] if tail else ""
            raise ExternalEngineFailure(plan.source.path, process.returncode, detail)

        missing = [out.path.name for out in plan.outputs if not temp_path_for(out.path).exists()]
        if missing:
            self._discard_temps(plan)
            raise ExternalEngineFailure(
                plan.source.path, process.returncode, f"missing outputs: {', '.join(missing)}"
            )

        for out in plan.outputs:
            temp_path_for(out.path).replace(out.path)

        self.logger.info(f"SPLIT_END: {filename} status=completed elapsed={elapsed:.2f}s")
