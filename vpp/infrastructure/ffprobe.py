import subprocess
import json
import logging
from pathlib import Path
from typing import Dict, Any, List
from vpp.domain.errors import ProbeError
from vpp.domain.models import ProbeResult, StreamInfo

class FFprobeAdapter:
    """Wrapper around ffprobe to extract container and stream information."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @staticmethod
    def _to_int(value: Any) -> int:
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0

    @classmethod
    def _parse_duration_tag(cls, value: Any) -> float:
        if value is None:
            return 0.0
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            pass
        if ":" in text:
            parts = text.split(":")
            if len(parts) in (2, 3):
                try:
                    parts_f = [float(p) for p in parts]
                except ValueError:
                    return 0.0
                if len(parts_f) == 2:
                    minutes, seconds = parts_f
                    return minutes * 60 + seconds
                hours, minutes, seconds = parts_f
                return hours * 3600 + minutes * 60 + seconds
        return 0.0

    @classmethod
    def _parse_time_base_duration(cls, duration_ts: Any, time_base: Any) -> float:
        if duration_ts is None or time_base is None:
            return 0.0
        time_base_text = str(time_base)
        if "/" not in time_base_text:
            return 0.0
        num_text, den_text = time_base_text.split("/", 1)
        num = cls._to_float(num_text)
        den = cls._to_float(den_text)
        if den == 0:
            return 0.0
        ticks = cls._to_float(duration_ts)
        if ticks <= 0:
            return 0.0
        return ticks * (num / den)

    def _resolve_duration(self, fmt: Dict[str, Any], video_stream: Dict[str, Any]) -> float:
        # Fallback order: format.duration, format tags, stream.duration, stream tags, duration_ts/time_base, size/bitrate
        duration = self._to_float(fmt.get("duration"))
        if duration <= 0:
            tags = fmt.get("tags", {}) or {}
            duration = self._parse_duration_tag(tags.get("DURATION") or tags.get("duration"))
        if duration <= 0:
            duration = self._to_float(video_stream.get("duration"))
        if duration <= 0:
            tags = video_stream.get("tags", {}) or {}
            duration = self._parse_duration_tag(tags.get("DURATION") or tags.get("duration"))
        if duration <= 0:
            duration = self._parse_time_base_duration(video_stream.get("duration_ts"), video_stream.get("time_base"))
        if duration <= 0:
            bit_rate = self._to_float(fmt.get("bit_rate") or video_stream.get("bit_rate"))
            size = self._to_float(fmt.get("size"))
            if bit_rate > 0 and size > 0:
                duration = (size * 8) / bit_rate
        return max(0.0, duration)

    def _parse_streams(self, raw_streams: List[Dict[str, Any]]) -> List[StreamInfo]:
        streams = []
        for position, raw in enumerate(raw_streams):
            codec_type = str(raw.get("codec_type") or "unknown")
            dimensions = {}
            if codec_type == "video":
                dimensions = {
                    "width": max(0, self._to_int(raw.get("width"))),
                    "height": max(0, self._to_int(raw.get("height"))),
                }
            streams.append(StreamInfo(
                index=self._to_int(raw.get("index", position)),
                codec_type=codec_type,
                codec_name=raw.get("codec_name"),
                **dimensions,
            ))
        return streams

    def probe(self, file_path: Path) -> ProbeResult:
        """Executes ffprobe and parses its JSON output into a ProbeResult."""
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ProbeError(f"Source file not found: {file_path}")

        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise ProbeError(f"Could not run ffprobe for {file_path}: {e}") from e
        if result.returncode != 0:
            raise ProbeError(f"ffprobe failed for {file_path}: {result.stderr.strip() or 'unrecognized file'}")

        try:
            data = json.loads(result.stdout or "")
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned unreadable output for {file_path}: {e}") from e

        fmt = data.get("format") or {}
        format_name = fmt.get("format_name")
        if not format_name:
            raise ProbeError(f"Unrecognized container format: {file_path}")

        raw_streams = data.get("streams", []) or []
        video_stream = next((s for s in raw_streams if s.get("codec_type") == "video"), {})

        size_bytes = self._to_int(fmt.get("size"))
        if size_bytes <= 0:
            size_bytes = file_path.stat().st_size

        probe_result = ProbeResult(
            duration=self._resolve_duration(fmt, video_stream),
            format_name=str(format_name),
            size_bytes=size_bytes,
            streams=self._parse_streams(raw_streams),
        )
        self.logger.debug(
            f"PROBE: {file_path.name} format={probe_result.format_name} "
            f"duration={probe_result.duration:.2f}s streams={len(probe_result.streams)}"
        )
        return probe_result
