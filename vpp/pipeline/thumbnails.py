import logging
import time
from pathlib import Path
from typing import List, Optional
from vpp.domain.errors import FilesystemError, ThumbnailError
from vpp.infrastructure.media_backend import MediaBackend


class ThumbnailGenerator:
    """Extracts still frames and verifies every expected file exists."""

    def __init__(self, backend: MediaBackend, size: str = "320x240", debug: bool = False):
        self.backend = backend
        self.size = size
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def generate(self, source_path: Path, output_dir: Path, count: int = 1, duration: Optional[float] = None) -> List[Path]:
        if count < 1:
            raise ThumbnailError(f"Thumbnail count must be >= 1, got {count}")
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create thumbnail directory {output_dir}: {e}") from e

        start_time = time.monotonic()
        self.logger.info(f"THUMBNAIL_START: {source_path.name} count={count}")
        expected = self.backend.extract_frames(source_path, output_dir, count, duration=duration, size=self.size)

        # ffmpeg can exit 0 while skipping a frame on very short videos
        missing = [p for p in expected if not p.is_file()]
        if len(expected) < count or missing:
            names = ", ".join(p.name for p in missing) or f"{count - len(expected)} frame(s)"
            raise ThumbnailError(
                f"Thumbnail extraction for {source_path.name} produced "
                f"{len(expected) - len(missing)}/{count} files (missing: {names})"
            )

        if self.debug:
            elapsed = time.monotonic() - start_time
            self.logger.debug(f"THUMBNAIL_END: {source_path.name} elapsed={elapsed:.2f}s")
        return list(expected)
