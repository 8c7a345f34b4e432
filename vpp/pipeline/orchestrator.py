"""Pipeline orchestrator for the per-asset processing lifecycle.

Sequences probe → thumbnail → rendition ladder for one uploaded video and
folds every stage's progress into a single stream of ProcessingProgress
snapshots.

Key responsibilities:
- Probe the source once; nothing is written to disk if probing fails or the
  source has no video stream
- Create the asset's `videos/{id}` and `thumbnails/{id}` directories
- Generate the thumbnail(s), then plan and encode the ladder one tier at a time
- Re-emit encoder progress tagged with the active tier and its position
- Delete the uploaded source after success (never after failure)
- Map every failure to a ProcessingFailure; `process()` never raises
- Report terminal state to the AssetStore and publish lifecycle events
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
from vpp.config.models import AppConfig
from vpp.domain.errors import (
    FilesystemError,
    InvalidInputError,
    PipelineError,
    ProbeError,
    ProcessingCancelled,
)
from vpp.domain.events import AssetCompleted, AssetEvent, AssetFailed, AssetProgressUpdated, AssetStarted
from vpp.domain.models import (
    MediaSummary,
    ProbeResult,
    ProcessingFailure,
    ProcessingJob,
    ProcessingProgress,
    ProcessingResult,
    ProcessingStage,
    RenditionProfile,
)
from vpp.infrastructure.asset_store import AssetStore
from vpp.infrastructure.event_bus import EventBus
from vpp.infrastructure.media_backend import MediaBackend
from vpp.pipeline.ladder import plan
from vpp.pipeline.thumbnails import ThumbnailGenerator
from vpp.pipeline.transcoder import RenditionTranscoder

ProgressSink = Callable[[ProcessingProgress], None]
Outcome = Union[ProcessingResult, ProcessingFailure]


class Orchestrator:
    """Video processing pipeline orchestrator.

    One `process()` call drives one asset from `processing` to a terminal
    state. Stages run strictly sequentially on the calling thread; run
    several orchestrator calls on separate threads to process assets
    concurrently (see ProcessingService).

    Args:
        config: AppConfig with general, encoding and rendition table settings.
        backend: MediaBackend used for probing, frame extraction and encoding.
        event_bus: Optional EventBus for lifecycle and progress events.
        asset_store: Optional AssetStore that receives progress snapshots and
            the terminal record update.
    """

    def __init__(
        self,
        config: AppConfig,
        backend: MediaBackend,
        event_bus: Optional[EventBus] = None,
        asset_store: Optional[AssetStore] = None,
    ):
        self.config = config
        self.backend = backend
        self.event_bus = event_bus or EventBus()
        self.asset_store = asset_store
        self.thumbnail_generator = ThumbnailGenerator(
            backend,
            size=config.general.thumbnail_size,
            debug=config.general.debug,
        )
        self.transcoder = RenditionTranscoder(backend, retries=config.general.transcode_retries)
        self.logger = logging.getLogger(__name__)

    def process(
        self,
        job: ProcessingJob,
        progress_sink: Optional[ProgressSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Outcome:
        """Runs the whole pipeline for one asset and returns its outcome."""
        filename = job.source_path.name
        start_time = time.monotonic()
        self.logger.info(f"PROCESS_START: {filename} asset={job.asset_id}")
        self._publish(AssetStarted(asset_id=job.asset_id, source_name=filename))

        try:
            result = self._run(job, progress_sink, cancel_event)
        except PipelineError as e:
            failure = ProcessingFailure(asset_id=job.asset_id, error_kind=type(e).__name__, message=str(e))
        except Exception as e:
            self.logger.exception(f"Unexpected exception processing {filename}")
            failure = ProcessingFailure(
                asset_id=job.asset_id,
                error_kind="UnexpectedError",
                message=f"Unexpected error: {e}",
            )
        else:
            self._report_completed(result)
            elapsed = time.monotonic() - start_time
            self.logger.info(
                f"PROCESS_END: {filename} asset={job.asset_id} status=completed "
                f"renditions={list(result.resolutions)} elapsed={elapsed:.2f}s"
            )
            return result

        self._report_failed(failure)
        elapsed = time.monotonic() - start_time
        self.logger.error(
            f"PROCESS_END: {filename} asset={job.asset_id} status=failed "
            f"kind={failure.error_kind} elapsed={elapsed:.2f}s: {failure.message}"
        )
        return failure

    def _run(
        self,
        job: ProcessingJob,
        progress_sink: Optional[ProgressSink],
        cancel_event: Optional[threading.Event],
    ) -> ProcessingResult:
        base_dir = job.output_base_dir

        def emit(progress: ProcessingProgress):
            self._emit(job.asset_id, progress, progress_sink)

        # 1. Probe (read-only); reject sources without a video stream before touching disk
        probe_result = self._probe(job.source_path)
        source_height = self._source_height(probe_result, job.source_path)
        self._check_cancelled(cancel_event)

        # 2. Thumbnails
        video_dir = base_dir / "videos" / job.asset_id
        thumb_dir = base_dir / "thumbnails" / job.asset_id
        self._ensure_dirs(video_dir, thumb_dir)

        emit(ProcessingProgress(stage=ProcessingStage.THUMBNAILS, percent=0))
        thumbnails = self.thumbnail_generator.generate(
            job.source_path,
            thumb_dir,
            count=self.config.general.thumbnail_count,
            duration=probe_result.duration,
        )
        emit(ProcessingProgress(stage=ProcessingStage.THUMBNAILS, percent=100))

        # 3. Plan
        ladder = plan(source_height, self.config.renditions)
        self.logger.info(
            f"LADDER: {job.source_path.name} -> {', '.join(p.name for p in ladder)}"
        )

        # 4. Convert, one tier at a time
        resolutions = self._convert_ladder(job, ladder, video_dir, probe_result.duration, emit, cancel_event)

        # 5. Finalize
        self._delete_source(job.source_path)

        return ProcessingResult(
            asset_id=job.asset_id,
            thumbnails=[self._relative(p, base_dir) for p in thumbnails],
            resolutions=resolutions,
            metadata=MediaSummary(
                duration=probe_result.duration,
                size=probe_result.size_bytes,
                format=probe_result.container_format(job.source_path),
            ),
        )

    def _probe(self, source_path: Path) -> ProbeResult:
        self.logger.info(f"PROBE_START: {source_path.name}")
        try:
            probe_result = self.backend.probe(source_path)
        except ProbeError:
            raise
        except Exception as e:
            raise ProbeError(f"Failed to probe {source_path.name}: {e}") from e
        video = probe_result.primary_video_stream
        if video is not None:
            self.logger.info(
                f"PROBE_END: {source_path.name} {video.width or 0}x{video.height or 0} "
                f"duration={probe_result.duration:.2f}s format={probe_result.format_name}"
            )
        return probe_result

    def _source_height(self, probe_result: ProbeResult, source_path: Path) -> int:
        video = probe_result.primary_video_stream
        if video is None:
            raise InvalidInputError(f"No video stream found in {source_path.name}")
        height = video.height or 0
        if height < 0:
            raise InvalidInputError(f"Invalid video height {height} in {source_path.name}")
        return height

    def _convert_ladder(
        self,
        job: ProcessingJob,
        ladder: List[RenditionProfile],
        video_dir: Path,
        duration: float,
        emit: ProgressSink,
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, str]:
        resolutions: Dict[str, str] = {}
        total = len(ladder)
        for index, profile in enumerate(ladder, start=1):
            # Safe point: nothing is running between two tiers
            self._check_cancelled(cancel_event)

            output_path = video_dir / f"{profile.name}.mp4"
            self.logger.info(f"TRANSCODE_START: {job.source_path.name} {profile.name} ({index}/{total})")
            emit(ProcessingProgress(
                stage=ProcessingStage.CONVERSION,
                resolution=profile.name,
                current=index,
                total=total,
                percent=0,
            ))

            last_percent = 0.0

            def on_progress(percent: float, profile=profile, index=index):
                nonlocal last_percent
                # Encoder reports can jitter near 0% and 100%; keep the tier monotonic
                clamped = max(last_percent, min(100.0, max(0.0, float(percent or 0.0))))
                last_percent = clamped
                emit(ProcessingProgress(
                    stage=ProcessingStage.CONVERSION,
                    resolution=profile.name,
                    current=index,
                    total=total,
                    percent=clamped,
                ))

            self.transcoder.transcode(
                job.source_path,
                output_path,
                profile,
                progress_sink=on_progress,
                duration=duration,
                cancel_event=cancel_event,
            )
            resolutions[profile.name] = self._relative(output_path, job.output_base_dir)
            self.logger.info(f"TRANSCODE_END: {job.source_path.name} {profile.name} ({index}/{total})")
        return resolutions

    def _ensure_dirs(self, *dirs: Path):
        for directory in dirs:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"Cannot create directory {directory}: {e}") from e

    def _delete_source(self, source_path: Path):
        if not self.config.general.delete_source:
            return
        try:
            if source_path.exists():
                source_path.unlink()
                self.logger.info(f"Source file deleted: {source_path.name}")
        except OSError as e:
            # Renditions are complete; losing the cleanup does not fail the asset
            self.logger.error(f"Failed to delete source file {source_path}: {e}")

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelled("Processing cancelled")

    @staticmethod
    def _relative(path: Path, base_dir: Path) -> str:
        try:
            return path.relative_to(base_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def _emit(self, asset_id: str, progress: ProcessingProgress, progress_sink: Optional[ProgressSink]):
        if progress_sink is not None:
            progress_sink(progress)
        if self.asset_store is not None:
            self.asset_store.set_progress(asset_id, progress)
        self._publish(AssetProgressUpdated(asset_id=asset_id, progress=progress))

    def _report_completed(self, result: ProcessingResult):
        if self.asset_store is not None:
            try:
                self.asset_store.mark_completed(result.asset_id, result)
            except ValueError as e:
                self.logger.warning(f"Could not record completion for {result.asset_id}: {e}")
        self._publish(AssetCompleted(asset_id=result.asset_id, result=result))

    def _report_failed(self, failure: ProcessingFailure):
        if self.asset_store is not None:
            try:
                self.asset_store.mark_failed(failure.asset_id, failure)
            except ValueError as e:
                self.logger.warning(f"Could not record failure for {failure.asset_id}: {e}")
        self._publish(AssetFailed(asset_id=failure.asset_id, failure=failure))

    def _publish(self, event: AssetEvent):
        # Subscribers must not be able to change the outcome of an asset
        try:
            self.event_bus.publish(event)
        except Exception:
            self.logger.exception(f"Event subscriber failed on {type(event).__name__} for {event.asset_id}")
