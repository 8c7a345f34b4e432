import typer
import threading
from pathlib import Path
from typing import Optional

from rich.console import Console
from vpp.config.loader import load_config
from vpp.config.models import AppConfig
from vpp.domain.errors import InvalidInputError
from vpp.domain.models import ProcessingFailure
from vpp.infrastructure.asset_store import AssetStore
from vpp.infrastructure.event_bus import EventBus
from vpp.infrastructure.housekeeping import HousekeepingService
from vpp.infrastructure.logging import setup_logging
from vpp.infrastructure.media_backend import FFmpegMediaBackend
from vpp.infrastructure.progress_channel import ProgressChannel
from vpp.pipeline.ladder import plan as plan_ladder
from vpp.pipeline.orchestrator import Orchestrator
from vpp.pipeline.service import ProcessingService
from vpp.ui.progress_view import (
    ProgressView,
    build_failure_message,
    build_ladder_table,
    build_probe_table,
    build_result_table,
)

app = typer.Typer(help="VPP (Video Processing Pipeline) - thumbnail + rendition ladder")

DEFAULT_CONFIG_PATH = Path("conf/vpp.yaml")


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    """Explicit --config must exist; the default path is optional."""
    if config_path is not None:
        return load_config(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return AppConfig()


@app.command()
def process(
    source: Path = typer.Argument(..., help="Uploaded video file to process"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Base directory for thumbnails/ and videos/"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    asset_id: Optional[str] = typer.Option(None, "--asset-id", help="Asset id (default: random uuid4)"),
    title: Optional[str] = typer.Option(None, "--title", help="Display title (default: file name)"),
    thumbnails: Optional[int] = typer.Option(None, "--thumbnails", "-n", help="Override number of thumbnails"),
    keep_source: bool = typer.Option(False, "--keep-source", help="Do not delete the source after success"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Probe, thumbnail and transcode one video into its rendition ladder."""
    console = Console()
    if not source.is_file():
        typer.secho(f"Error: source file {source} does not exist", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        config = _load_app_config(config_path)
        if thumbnails is not None:
            config.general.thumbnail_count = thumbnails
        if keep_source:
            config.general.delete_source = False
        if log_path is not None:
            config.general.log_path = str(log_path)
        if debug:
            config.general.debug = True

        base_dir = Path(output_dir or config.general.output_dir)
        log_path_value = Path(config.general.log_path) if config.general.log_path else None
        logger = setup_logging(base_dir, debug=config.general.debug, log_path=log_path_value)
        logger.info(f"VPP started: source={source} output_dir={base_dir}")
        logger.info(
            f"Config: thumbnails={config.general.thumbnail_count}, retries={config.general.transcode_retries}, "
            f"preset={config.encoding.preset}, tiers={[p.name for p in config.renditions]}, debug={config.general.debug}"
        )

        HousekeepingService().cleanup_temp_files(base_dir / "videos")

        store = AssetStore()
        bus = EventBus()
        backend = FFmpegMediaBackend.from_config(config)
        orchestrator = Orchestrator(config=config, backend=backend, event_bus=bus, asset_store=store)
        channel = ProgressChannel()
        outcome = {}

        with ProcessingService(orchestrator, store, base_dir, max_workers=1) as service:
            asset_id = service.submit(
                source,
                title=source.stem if title is None else title,
                original_name=source.name,
                progress_sink=channel.send,
                asset_id=asset_id,
            )

            def _worker():
                try:
                    outcome["value"] = service.wait(asset_id)
                finally:
                    channel.close()

            worker = threading.Thread(target=_worker, name=f"vpp-{asset_id}", daemon=True)
            worker.start()
            try:
                with ProgressView(console) as view:
                    view.consume(channel)
            except KeyboardInterrupt:
                service.cancel(asset_id)
                worker.join()
                typer.secho("\nProcessing cancelled by user (Ctrl+C)", fg=typer.colors.YELLOW)
                raise typer.Exit(code=130)
            worker.join()

        result = outcome.get("value")
        if result is None or isinstance(result, ProcessingFailure):
            console.print(build_failure_message(result) if result else "[red]Processing did not finish[/red]")
            raise typer.Exit(code=1)
        console.print(build_result_table(result))
        record = store.get(asset_id)
        console.print(f"Status: [green]{record.status.value if record else 'completed'}[/green]")

    except typer.Exit:
        raise

    except InvalidInputError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    except Exception as e:
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command()
def plan(
    height: int = typer.Argument(..., help="Source video height in pixels"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Show which renditions would be produced for a source height."""
    try:
        config = _load_app_config(config_path)
        ladder = plan_ladder(height, config.renditions)
    except Exception as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    Console().print(build_ladder_table(height, ladder))


@app.command()
def probe(
    source: Path = typer.Argument(..., help="Video file to inspect"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Print container and stream metadata for a file."""
    try:
        config = _load_app_config(config_path)
        probe_result = FFmpegMediaBackend.from_config(config).probe(source)
    except Exception as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    Console().print(build_probe_table(probe_result))


if __name__ == "__main__":
    app()
