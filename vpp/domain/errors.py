"""Error taxonomy for the processing pipeline.

Every stage raises a subclass of `PipelineError`. The orchestrator catches them
at its boundary and turns them into a `ProcessingFailure` whose `error_kind`
is the class name, so callers can branch on it without importing this module.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all failures raised inside the pipeline."""


class ProbeError(PipelineError):
    """Source file is unreadable or not a recognized container."""


class ThumbnailError(PipelineError):
    """Frame extraction failed or produced fewer files than expected."""


class TranscodeError(PipelineError):
    """Encoding one rendition failed."""

    def __init__(self, message: str, resolution: Optional[str] = None, returncode: Optional[int] = None):
        super().__init__(message)
        self.resolution = resolution
        self.returncode = returncode


class InvalidInputError(PipelineError):
    """Malformed input, e.g. a probe result without a video stream."""


class FilesystemError(PipelineError):
    """Directory creation or cleanup failure."""


class ProcessingCancelled(PipelineError):
    """Cancellation was requested while the pipeline was running."""
