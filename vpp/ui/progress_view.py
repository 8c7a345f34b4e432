from typing import Dict, Iterable, Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table
from vpp.domain.models import (
    ProbeResult,
    ProcessingFailure,
    ProcessingProgress,
    ProcessingResult,
    ProcessingStage,
    RenditionProfile,
)

class ProgressView:
    """Renders a stream of ProcessingProgress snapshots as rich progress bars.

    One bar for the thumbnail stage, then one bar per rendition as the
    orchestrator reaches it.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.progress = Progress(
            TextColumn("[bold]{task.description:<18}"),
            BarColumn(),
            TextColumn("{task.percentage:>5.1f}%"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._tasks: Dict[str, TaskID] = {}
        self.last: Optional[ProcessingProgress] = None

    def __enter__(self):
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.progress.stop()
        return False

    @staticmethod
    def _key(update: ProcessingProgress) -> str:
        if update.stage == ProcessingStage.THUMBNAILS:
            return "thumbnails"
        return f"{update.resolution} ({update.current}/{update.total})"

    def update(self, update: ProcessingProgress):
        key = self._key(update)
        task_id = self._tasks.get(key)
        if task_id is None:
            task_id = self.progress.add_task(key, total=100)
            self._tasks[key] = task_id
        self.progress.update(task_id, completed=update.percent)
        self.last = update

    def consume(self, updates: Iterable[ProcessingProgress]):
        for update in updates:
            self.update(update)


def build_result_table(result: ProcessingResult) -> Table:
    table = Table(title=f"Asset {result.asset_id}")
    table.add_column("Item", style="cyan")
    table.add_column("Value")
    for thumb in result.thumbnails:
        table.add_row("thumbnail", thumb)
    for name, path in result.resolutions.items():
        table.add_row(name, path)
    table.add_row("duration", f"{result.metadata.duration:.2f}s")
    table.add_row("size", f"{result.metadata.size} bytes")
    table.add_row("format", result.metadata.format)
    return table


def build_failure_message(failure: ProcessingFailure) -> str:
    return f"[red]Processing failed ({failure.error_kind}):[/red] {failure.message}"


def build_ladder_table(source_height: int, ladder: Iterable[RenditionProfile]) -> Table:
    table = Table(title=f"Rendition ladder for {source_height}p source")
    table.add_column("#", justify="right")
    table.add_column("Tier", style="cyan")
    table.add_column("Size")
    table.add_column("Bitrate", justify="right")
    for index, profile in enumerate(ladder, start=1):
        table.add_row(str(index), profile.name, profile.size, profile.video_bitrate)
    return table


def build_probe_table(probe_result: ProbeResult) -> Table:
    table = Table(title=f"{probe_result.format_name} | {probe_result.duration:.2f}s | {probe_result.size_bytes} bytes")
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Codec")
    table.add_column("Dimensions")
    for stream in probe_result.streams:
        dims = f"{stream.width}x{stream.height}" if stream.codec_type == "video" else ""
        table.add_row(str(stream.index), stream.codec_type, stream.codec_name or "?", dims)
    return table
