import concurrent.futures
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, Optional
from vpp.domain.errors import InvalidInputError
from vpp.domain.models import AssetRecord, ProcessingJob
from vpp.infrastructure.asset_store import AssetStore
from vpp.pipeline.orchestrator import Orchestrator, Outcome, ProgressSink


class ProcessingService:
    """Accepts uploaded files and runs one orchestrator per asset on a thread pool.

    The service owns the AssetStore handle and the per-asset cancel events;
    the orchestrator only ever submits updates into the store.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        asset_store: AssetStore,
        output_base_dir: Path,
        max_workers: Optional[int] = None,
    ):
        self.orchestrator = orchestrator
        self.asset_store = asset_store
        self.output_base_dir = Path(output_base_dir)
        self.max_workers = max_workers or orchestrator.config.general.max_concurrent_assets
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="vpp-asset",
        )
        self._cancel_events: Dict[str, threading.Event] = {}
        self._futures: Dict[str, "concurrent.futures.Future[Outcome]"] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def submit(
        self,
        source_path: Path,
        title: str,
        description: str = "",
        original_name: Optional[str] = None,
        progress_sink: Optional[ProgressSink] = None,
        asset_id: Optional[str] = None,
    ) -> str:
        """Registers a `processing` record and schedules the pipeline. Returns the asset id."""
        source_path = Path(source_path)
        if not title or not title.strip():
            # Uploaded file is useless without a title; remove it like the upload route does
            try:
                source_path.unlink()
            except OSError:
                self.logger.warning(f"Could not remove rejected upload {source_path}")
            raise InvalidInputError("Title is required")
        if not source_path.is_file():
            raise InvalidInputError(f"Uploaded file not found: {source_path}")

        asset_id = asset_id or str(uuid.uuid4())
        record = AssetRecord(
            id=asset_id,
            title=title.strip(),
            description=description or "",
            original_name=original_name or source_path.name,
        )
        self.asset_store.put(asset_id, record)

        cancel_event = threading.Event()
        job = ProcessingJob(source_path=source_path, asset_id=asset_id, output_base_dir=self.output_base_dir)
        with self._lock:
            self._cancel_events[asset_id] = cancel_event
            future = self._executor.submit(self.orchestrator.process, job, progress_sink, cancel_event)
            self._futures[asset_id] = future
        future.add_done_callback(lambda _f, asset_id=asset_id: self._forget(asset_id))
        self.logger.info(f"Asset queued: {asset_id} ({record.original_name})")
        return asset_id

    def _forget(self, asset_id: str):
        with self._lock:
            self._cancel_events.pop(asset_id, None)

    def cancel(self, asset_id: str) -> bool:
        """Requests cooperative cancellation; returns False if the asset is not running."""
        with self._lock:
            event = self._cancel_events.get(asset_id)
        if event is None:
            return False
        event.set()
        return True

    def wait(self, asset_id: str, timeout: Optional[float] = None) -> Outcome:
        """Blocks until the asset finishes and returns its outcome.

        The outcome is handed out once; the service stops tracking the asset
        afterwards, so a second wait() for the same id raises KeyError.
        """
        with self._lock:
            future = self._futures[asset_id]
        outcome = future.result(timeout=timeout)
        with self._lock:
            self._futures.pop(asset_id, None)
        return outcome

    def pending(self) -> int:
        """Number of submitted assets whose outcome has not been collected by wait()."""
        with self._lock:
            return len(self._futures)

    def shutdown(self, wait: bool = True):
        if not wait:
            with self._lock:
                for event in self._cancel_events.values():
                    event.set()
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=exc_type is None)
        return False
