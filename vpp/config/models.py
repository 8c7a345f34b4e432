import re
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from vpp.domain.models import RenditionProfile

DEFAULT_RENDITIONS = (
    RenditionProfile(name="360p", width=640, height=360, video_bitrate="500k"),
    RenditionProfile(name="480p", width=854, height=480, video_bitrate="1000k"),
    RenditionProfile(name="720p", width=1280, height=720, video_bitrate="2500k"),
    RenditionProfile(name="1080p", width=1920, height=1080, video_bitrate="5000k"),
    RenditionProfile(name="1440p", width=2560, height=1440, video_bitrate="8000k"),
    RenditionProfile(name="4k", width=3840, height=2160, video_bitrate="15000k"),
)

_SIZE_RE = re.compile(r"^\d+x\d+$")
_BITRATE_RE = re.compile(r"^\d+[kKmM]?$")

class GeneralConfig(BaseModel):
    thumbnail_count: int = Field(default=1, ge=1)
    thumbnail_size: str = "320x240"
    transcode_retries: int = Field(default=0, ge=0, le=5)
    max_concurrent_assets: int = Field(default=2, ge=1)
    delete_source: bool = True
    output_dir: str = "uploads"
    log_path: Optional[str] = None
    debug: bool = False

    @field_validator("thumbnail_size")
    @classmethod
    def validate_thumbnail_size(cls, v: str) -> str:
        if not _SIZE_RE.match(v):
            raise ValueError(f"Invalid thumbnail_size {v!r}. Expected WIDTHxHEIGHT, e.g. 320x240.")
        return v

class EncodingConfig(BaseModel):
    """Fixed encoding policy applied to every rendition."""
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    movflags: str = "+faststart"  # moov atom at file head for progressive playback
    profile: str = "high"
    level: str = "4.2"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    renditions: List[RenditionProfile] = Field(default_factory=lambda: list(DEFAULT_RENDITIONS))

    @field_validator("renditions")
    @classmethod
    def validate_renditions(cls, v: List[RenditionProfile]) -> List[RenditionProfile]:
        if not v:
            raise ValueError("renditions must contain at least one profile")
        names = [p.name for p in v]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate rendition names: {names}")
        heights = [p.height for p in v]
        if any(b <= a for a, b in zip(heights, heights[1:])):
            raise ValueError("renditions must be strictly ascending by height")
        for profile in v:
            if not _BITRATE_RE.match(profile.video_bitrate):
                raise ValueError(f"Invalid video_bitrate {profile.video_bitrate!r} for {profile.name}")
        return v
