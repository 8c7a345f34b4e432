import logging
import threading
from pathlib import Path
from typing import Callable, Optional
from vpp.domain.errors import TranscodeError
from vpp.domain.models import RenditionProfile
from vpp.infrastructure.media_backend import MediaBackend


class RenditionTranscoder:
    """Runs one (source, profile) encode at a time with optional bounded retry.

    With retries=0 a single encoder failure fails the rendition, which in turn
    fails the whole asset.
    """

    def __init__(self, backend: MediaBackend, retries: int = 0):
        self.backend = backend
        self.retries = retries
        self.logger = logging.getLogger(__name__)

    def transcode(
        self,
        source_path: Path,
        output_path: Path,
        profile: RenditionProfile,
        progress_sink: Optional[Callable[[float], None]] = None,
        duration: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        attempts = self.retries + 1
        attempt = 1
        while True:
            try:
                return self.backend.encode(
                    source_path,
                    output_path,
                    profile,
                    on_progress=progress_sink,
                    duration=duration,
                    cancel_event=cancel_event,
                )
            except TranscodeError as e:
                if e.resolution is None:
                    e.resolution = profile.name
                if attempt >= attempts:
                    raise
                self.logger.warning(
                    f"TRANSCODE_RETRY: {source_path.name} {profile.name} "
                    f"attempt {attempt}/{attempts} failed: {e}"
                )
                attempt += 1
