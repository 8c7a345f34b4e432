"""Domain events for the video processing pipeline.

Events represent asset lifecycle changes that flow through the EventBus,
decoupling the orchestrator from whoever is watching it (CLI, logs, tests).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from .models import ProcessingFailure, ProcessingProgress, ProcessingResult
from pydantic import BaseModel


class Event(BaseModel):
    """Base class for all domain events.

    Events are validated Pydantic models. They are not frozen by default.
    """

    pass


class AssetEvent(Event):
    """Base class for events related to a specific asset."""

    asset_id: str


class AssetStarted(AssetEvent):
    """Emitted when the orchestrator picks up an asset."""

    source_name: str


class AssetProgressUpdated(AssetEvent):
    """Emitted for every progress snapshot (thumbnail and conversion stages)."""

    progress: ProcessingProgress


class AssetCompleted(AssetEvent):
    """Emitted once all renditions are written and the source is finalized."""

    result: ProcessingResult


class AssetFailed(AssetEvent):
    """Emitted when any stage fails; partial renditions are not referenced."""

    failure: ProcessingFailure
