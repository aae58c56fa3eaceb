import subprocess
import json
from pathlib import Path
from typing import Any, Dict, Optional
from polysplit.domain.errors import ProbeError
from polysplit.domain.models import AudioFacts

class FFprobeAdapter:
    """Wrapper around ffprobe to read the facts of the first audio stream."""

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary

    @staticmethod
    def _to_int(value: Any) -> Optional[int]:
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.upper() == "N/A":
            return None
        try:
            number = int(float(text))
        except ValueError:
            return None
        return number if number > 0 else None

    def _build_command(self, file_path: Path) -> list:
        return [
            self.binary,
            "-v", "error",
            "-select_streams", "a:0",
            "-show_entries", "stream=channels,sample_fmt,bits_per_raw_sample,bits_per_sample",
            "-of", "json",
            str(file_path),
        ]

    def get_stream_info(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and returns the raw first audio stream dict."""
        try:
            result = subprocess.run(self._build_command(file_path), capture_output=True, text=True)
        except OSError as e:
            raise ProbeError(f"ffprobe could not be executed for {file_path}: {e}") from e

        if result.returncode != 0:
            raise ProbeError(f"ffprobe failed for {file_path}: {result.stderr.strip()}")

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {file_path}: {e}") from e

        streams = data.get("streams") or []
        if not streams:
            raise ProbeError(f"No audio stream found in {file_path}")
        return streams[0]

    def probe(self, file_path: Path) -> AudioFacts:
        """Returns channel count and encoding facts, or raises ProbeError."""
        stream = self.get_stream_info(file_path)

        channels = self._to_int(stream.get("channels"))
        if channels is None:
            raise ProbeError(f"Cannot read channels for: {Path(file_path).name}")

        # bits_per_raw_sample is the real depth (24-bit WAV decodes as s32)
        bits = self._to_int(stream.get("bits_per_raw_sample"))
        if bits is None:
            bits = self._to_int(stream.get("bits_per_sample"))

        sample_format = stream.get("sample_fmt")
        return AudioFacts(
            channel_count=channels,
            sample_format=str(sample_format) if sample_format else None,
            bits_per_sample=bits,
        )
