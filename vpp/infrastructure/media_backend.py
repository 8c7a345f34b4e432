"""Capability interface the pipeline uses to touch media files.

The pipeline layer only talks to a `MediaBackend`; the ffmpeg/ffprobe
implementation below is the production one, and tests plug in a fake that
returns canned results.
"""

import threading
from pathlib import Path
from typing import Callable, List, Optional, Protocol
from vpp.config.models import AppConfig
from vpp.domain.models import ProbeResult, RenditionProfile
from vpp.infrastructure.ffmpeg import FFmpegAdapter
from vpp.infrastructure.ffprobe import FFprobeAdapter


class MediaBackend(Protocol):
    def probe(self, source_path: Path) -> ProbeResult:
        ...

    def extract_frames(
        self,
        source_path: Path,
        output_dir: Path,
        count: int,
        duration: Optional[float] = None,
        size: str = "320x240",
    ) -> List[Path]:
        ...

    def encode(
        self,
        source_path: Path,
        output_path: Path,
        profile: RenditionProfile,
        on_progress: Optional[Callable[[float], None]] = None,
        duration: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        ...


class FFmpegMediaBackend:
    """MediaBackend backed by the ffprobe and ffmpeg command line tools."""

    def __init__(self, ffprobe_adapter: FFprobeAdapter, ffmpeg_adapter: FFmpegAdapter):
        self.ffprobe_adapter = ffprobe_adapter
        self.ffmpeg_adapter = ffmpeg_adapter

    @classmethod
    def from_config(cls, config: AppConfig) -> "FFmpegMediaBackend":
        return cls(
            FFprobeAdapter(ffprobe_path=config.encoding.ffprobe_path),
            FFmpegAdapter(encoding=config.encoding, debug=config.general.debug),
        )

    def probe(self, source_path: Path) -> ProbeResult:
        return self.ffprobe_adapter.probe(source_path)

    def extract_frames(self, source_path, output_dir, count, duration=None, size="320x240"):
        return self.ffmpeg_adapter.extract_frames(source_path, output_dir, count, duration=duration, size=size)

    def encode(self, source_path, output_path, profile, on_progress=None, duration=None, cancel_event=None):
        return self.ffmpeg_adapter.encode(
            source_path,
            output_path,
            profile,
            on_progress=on_progress,
            duration=duration,
            cancel_event=cancel_event,
        )
