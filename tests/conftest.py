import pytest
import yaml
from pathlib import Path
from typing import List, Optional, Sequence
from vpp.config.models import AppConfig
from vpp.domain.errors import ProbeError, ThumbnailError, TranscodeError
from vpp.domain.models import ProbeResult, StreamInfo
from vpp.infrastructure.asset_store import AssetStore
from vpp.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "thumbnail_count": 1,
            "thumbnail_size": "320x240",
            "transcode_retries": 0,
            "max_concurrent_assets": 2,
            "delete_source": True,
            "debug": False,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "vpp.yaml"

    content = {
        'general': {
            'thumbnail_count': 2,
            'thumbnail_size': '160x120',
            'transcode_retries': 1,
            'debug': False,
        },
        'encoding': {
            'preset': 'veryfast',
        },
        'renditions': {
            '240p': {'width': 426, 'height': 240, 'video_bitrate': '300k'},
            '480p': {'width': 854, 'height': 480, 'video_bitrate': '1000k'},
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus / Store Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def asset_store():
    """Returns an empty AssetStore."""
    return AssetStore()

# ============================================================================
# Fake media backend
# ============================================================================

def make_probe_result(width: int = 1280, height: int = 720, duration: float = 10.0,
                      size_bytes: int = 2048, format_name: str = "mp4",
                      with_video: bool = True) -> ProbeResult:
    streams = []
    if with_video:
        streams.append(StreamInfo(index=0, codec_type="video", codec_name="h264", width=width, height=height))
    streams.append(StreamInfo(index=len(streams), codec_type="audio", codec_name="aac"))
    return ProbeResult(duration=duration, format_name=format_name, size_bytes=size_bytes, streams=streams)


class FakeMediaBackend:
    """Deterministic MediaBackend: canned probe result, files written instantly."""

    def __init__(
        self,
        probe_result: Optional[ProbeResult] = None,
        probe_error: Optional[Exception] = None,
        fail_at: Optional[str] = None,
        skip_frames: bool = False,
        progress_steps: Sequence[float] = (25.0, 50.0, 75.0),
    ):
        self.probe_result = probe_result or make_probe_result()
        self.probe_error = probe_error
        self.fail_at = fail_at
        self.skip_frames = skip_frames
        self.progress_steps = list(progress_steps)
        self.probe_calls: List[Path] = []
        self.frame_calls: List[tuple] = []
        self.encode_calls: List[str] = []

    def probe(self, source_path):
        self.probe_calls.append(Path(source_path))
        if self.probe_error is not None:
            raise self.probe_error
        return self.probe_result.model_copy(deep=True)

    def extract_frames(self, source_path, output_dir, count, duration=None, size="320x240"):
        self.frame_calls.append((Path(source_path), Path(output_dir), count, duration, size))
        if self.probe_result.primary_video_stream is None:
            raise ThumbnailError(
                f"Frame extraction 1/{count} failed for {Path(source_path).name} "
                f"(exit code 1): Output file #0 does not contain any stream"
            )
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for i in range(1, count + 1):
            path = output_dir / f"{Path(source_path).stem}_thumb_{i}.png"
            if not self.skip_frames:
                path.write_bytes(b"\x89PNG fake")
            paths.append(path)
        return paths

    def encode(self, source_path, output_path, profile, on_progress=None, duration=None, cancel_event=None):
        self.encode_calls.append(profile.name)
        if profile.name == self.fail_at:
            raise TranscodeError(f"ffmpeg exited with code 1 while converting to {profile.name}", resolution=profile.name, returncode=1)
        for step in self.progress_steps:
            if on_progress:
                on_progress(step)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(f"{profile.name} rendition".encode())
        if on_progress:
            on_progress(100.0)
        return output_path


@pytest.fixture
def fake_backend():
    return FakeMediaBackend()


@pytest.fixture
def corrupt_backend():
    return FakeMediaBackend(probe_error=ProbeError("ffprobe failed for corrupt.mp4: Invalid data found when processing input"))

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def output_base(tmp_path):
    """Base directory for thumbnails/ and videos/."""
    base = tmp_path / "uploads"
    base.mkdir()
    return base

@pytest.fixture
def source_video(tmp_path):
    """Creates a dummy uploaded file in a temp upload directory."""
    temp_dir = tmp_path / "temp"
    temp_dir.mkdir()
    f = temp_dir / "clip.mp4"
    f.write_bytes(b"dummy video content " * 100)
    return f


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (integration tests with real files)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
