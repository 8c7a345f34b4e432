import threading
from typing import Dict, List, Optional
from vpp.domain.models import (
    AssetRecord,
    AssetStatus,
    ProcessingFailure,
    ProcessingProgress,
    ProcessingResult,
)

class AssetStore:
    """Thread-safe in-memory catalog of asset records and their live progress.

    Records are replaced whole on every write, never mutated in place, so a
    reader always sees either the previous or the next version of a record.
    Deleting a record leaves the files on disk untouched.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, AssetRecord] = {}
        self._progress: Dict[str, ProcessingProgress] = {}

    def put(self, asset_id: str, record: AssetRecord) -> None:
        with self._lock:
            self._records[asset_id] = record

    def get(self, asset_id: str) -> Optional[AssetRecord]:
        with self._lock:
            return self._records.get(asset_id)

    def delete(self, asset_id: str) -> bool:
        with self._lock:
            self._progress.pop(asset_id, None)
            return self._records.pop(asset_id, None) is not None

    def list(self) -> List[AssetRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # Progress is ephemeral: overwritten on each update, dropped once terminal.

    def set_progress(self, asset_id: str, progress: ProcessingProgress) -> None:
        with self._lock:
            record = self._records.get(asset_id)
            if record is not None and record.status.is_terminal:
                return
            self._progress[asset_id] = progress

    def get_progress(self, asset_id: str) -> Optional[ProcessingProgress]:
        with self._lock:
            return self._progress.get(asset_id)

    def clear_progress(self, asset_id: str) -> None:
        with self._lock:
            self._progress.pop(asset_id, None)

    def _transition(self, asset_id: str, **update) -> Optional[AssetRecord]:
        with self._lock:
            self._progress.pop(asset_id, None)
            current = self._records.get(asset_id)
            if current is None:
                return None
            if current.status.is_terminal:
                raise ValueError(f"Asset {asset_id} is already {current.status.value}")
            record = current.model_copy(update=update)
            self._records[asset_id] = record
            return record

    def mark_completed(self, asset_id: str, result: ProcessingResult) -> Optional[AssetRecord]:
        """Moves a processing record to completed; returns None for unknown (deleted) assets."""
        return self._transition(
            asset_id,
            status=AssetStatus.COMPLETED,
            thumbnails=list(result.thumbnails),
            resolutions=dict(result.resolutions),
            metadata=result.metadata,
            error=None,
        )

    def mark_failed(self, asset_id: str, failure: ProcessingFailure) -> Optional[AssetRecord]:
        return self._transition(
            asset_id,
            status=AssetStatus.FAILED,
            error=failure.message,
        )
