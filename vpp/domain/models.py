from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

class AssetStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not AssetStatus.PROCESSING

class ProcessingStage(str, Enum):
    THUMBNAILS = "thumbnails"
    CONVERSION = "conversion"

class SourceAsset(BaseModel):
    path: Path
    original_name: str
    size_bytes: int = Field(ge=0)

class StreamInfo(BaseModel):
    index: int = 0
    codec_type: str
    codec_name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

class ProbeResult(BaseModel):
    duration: float = Field(default=0.0, ge=0.0)
    format_name: str
    size_bytes: int = Field(default=0, ge=0)
    streams: List[StreamInfo] = Field(default_factory=list)

    @property
    def primary_video_stream(self) -> Optional[StreamInfo]:
        """First stream with codec_type == video; only this one drives planning."""
        return next((s for s in self.streams if s.codec_type == "video"), None)

    def container_format(self, source_path: Optional[Path] = None) -> str:
        """Short container name, e.g. "mp4" for "mov,mp4,m4a,3gp,3g2,mj2".

        ffprobe reports a demuxer family; the entry matching the file extension
        wins, otherwise the first one.
        """
        names = [n.strip() for n in self.format_name.split(",") if n.strip()]
        if not names:
            return self.format_name
        if source_path is not None:
            suffix = Path(source_path).suffix.lower().lstrip(".")
            if suffix in names:
                return suffix
        return names[0]

class RenditionProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    video_bitrate: str

    @property
    def size(self) -> str:
        return f"{self.width}x{self.height}"

class ProcessingProgress(BaseModel):
    """Snapshot of where one asset's pipeline currently is.

    `resolution`, `current` and `total` are only set in the conversion stage.
    """

    model_config = ConfigDict(frozen=True)

    stage: ProcessingStage
    percent: float = Field(default=0.0, ge=0.0, le=100.0)
    resolution: Optional[str] = None
    current: Optional[int] = Field(default=None, ge=1)
    total: Optional[int] = Field(default=None, ge=1)

class MediaSummary(BaseModel):
    duration: float
    size: int
    format: str

class ProcessingJob(BaseModel):
    source_path: Path
    asset_id: str
    output_base_dir: Path

class ProcessingResult(BaseModel):
    asset_id: str
    thumbnails: List[str] = Field(default_factory=list)
    resolutions: Dict[str, str] = Field(default_factory=dict)
    metadata: MediaSummary

class ProcessingFailure(BaseModel):
    asset_id: str
    error_kind: str
    message: str

class AssetRecord(BaseModel):
    id: str
    title: str
    description: str = ""
    original_name: Optional[str] = None
    upload_date: datetime = Field(default_factory=lambda: datetime.now().astimezone())
    status: AssetStatus = AssetStatus.PROCESSING
    thumbnails: List[str] = Field(default_factory=list)
    resolutions: Dict[str, str] = Field(default_factory=dict)
    metadata: Optional[MediaSummary] = None
    error: Optional[str] = None
