import subprocess
import re
import logging
import time
import threading
import queue
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional
from vpp.config.models import EncodingConfig
from vpp.domain.errors import ProcessingCancelled, ThumbnailError, TranscodeError
from vpp.domain.models import RenditionProfile

# Regex to parse 'time=00:00:00.00' from ffmpeg output
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")

def thumbnail_timestamps(duration: Optional[float], count: int) -> List[float]:
    """Evenly spaced capture points, excluding both ends (one frame lands at 50%)."""
    if not duration or duration <= 0:
        return [0.0] * count
    return [duration * i / (count + 1) for i in range(1, count + 1)]

def thumbnail_name(source_path: Path, index: int) -> str:
    return f"{Path(source_path).stem}_thumb_{index}.png"

class FFmpegAdapter:
    """Wrapper around ffmpeg for frame extraction and rendition encoding."""

    def __init__(self, encoding: Optional[EncodingConfig] = None, debug: bool = False):
        self.encoding = encoding or EncodingConfig()
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_frame_command(self, source_path: Path, output_path: Path, timestamp: float, size: str) -> List[str]:
        return [
            self.encoding.ffmpeg_path,
            "-y",
            "-ss", f"{timestamp:.3f}",
            "-i", str(source_path),
            "-frames:v", "1",
            "-s", size,
            "-an",
            str(output_path),
        ]

    def extract_frames(
        self,
        source_path: Path,
        output_dir: Path,
        count: int,
        duration: Optional[float] = None,
        size: str = "320x240",
    ) -> List[Path]:
        """Writes `count` still frames into output_dir and returns their expected paths.

        The paths are returned even if ffmpeg silently skipped a frame; callers
        must check that each one exists.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for index, timestamp in enumerate(thumbnail_timestamps(duration, count), start=1):
            output_path = output_dir / thumbnail_name(source_path, index)
            cmd = self._build_frame_command(source_path, output_path, timestamp, size)
            if self.debug:
                self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")
            try:
                result = subprocess.run(cmd, capture_output=True, text=True)
            except OSError as e:
                raise ThumbnailError(f"Could not run ffmpeg for {source_path.name}: {e}") from e
            if result.returncode != 0:
                tail = (result.stderr or "").strip().splitlines()[-1:] or ["no output"]
                raise ThumbnailError(
                    f"Frame extraction {index}/{count} failed for {source_path.name} "
                    f"(exit code {result.returncode}): {tail[0]}"
                )
            paths.append(output_path)
        return paths

    def _build_command(self, source_path: Path, tmp_path: Path, profile: RenditionProfile) -> List[str]:
        """Constructs the ffmpeg command line arguments for one rendition."""
        enc = self.encoding
        return [
            enc.ffmpeg_path,
            "-y",  # Overwrite output files
            "-i", str(source_path),
            "-c:v", enc.video_codec,
            "-c:a", enc.audio_codec,
            "-b:v", profile.video_bitrate,
            "-s", profile.size,
            "-preset", enc.preset,
            "-movflags", enc.movflags,
            "-profile:v", enc.profile,
            "-level", enc.level,
            # .tmp extension doesn't indicate format
            "-f", "mp4",
            str(tmp_path),
        ]

    @staticmethod
    def _terminate(process: subprocess.Popen):
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def encode(
        self,
        source_path: Path,
        output_path: Path,
        profile: RenditionProfile,
        on_progress: Optional[Callable[[float], None]] = None,
        duration: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """Encodes one rendition, reporting percent-complete through on_progress."""
        tag = f"{source_path.name}->{profile.name}"
        start_time = time.monotonic()
        tmp_path = output_path.with_suffix(".tmp")
        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = self._build_command(source_path, tmp_path, profile)
        self.logger.info(f"FFMPEG_START: {tag} ({profile.size} @ {profile.video_bitrate})")
        if self.debug:
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        total_duration = duration or 0.0

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                universal_newlines=True,
                bufsize=1
            )
        except OSError as e:
            raise TranscodeError(f"Could not run ffmpeg for {profile.name}: {e}", resolution=profile.name) from e

        output_queue: "queue.Queue[Optional[str]]" = queue.Queue()
        last_lines: deque = deque(maxlen=5)

        def _reader():
            if not process.stdout:
                output_queue.put(None)
                return
            for line in process.stdout:
                output_queue.put(line)
            output_queue.put(None)

        reader_thread = threading.Thread(target=_reader, daemon=True)
        reader_thread.start()

        while True:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info(f"FFMPEG_INTERRUPTED: {tag} (cancel requested)")
                self._terminate(process)
                if tmp_path.exists():
                    tmp_path.unlink()
                raise ProcessingCancelled(f"Cancelled while converting to {profile.name}")

            try:
                line = output_queue.get(timeout=0.1)
            except queue.Empty:
                if process.poll() is not None and not reader_thread.is_alive() and output_queue.empty():
                    break
                continue

            if line is None:
                break

            if line.strip():
                last_lines.append(line.strip())

            match = TIME_REGEX.search(line)
            if match and on_progress and total_duration > 0:
                h, m, s = map(float, match.groups())
                current_seconds = h * 3600 + m * 60 + s
                on_progress(min(100.0, max(0.0, (current_seconds / total_duration) * 100.0)))

        process.wait()
        elapsed = time.monotonic() - start_time

        if process.returncode != 0:
            if tmp_path.exists():
                tmp_path.unlink()
            detail = last_lines[-1] if last_lines else "no output"
            self.logger.info(f"FFMPEG_END: {tag} status=failed code={process.returncode} elapsed={elapsed:.2f}s")
            raise TranscodeError(
                f"ffmpeg exited with code {process.returncode} while converting to {profile.name}: {detail}",
                resolution=profile.name,
                returncode=process.returncode,
            )

        if tmp_path.exists():
            tmp_path.replace(output_path)
        if not output_path.exists():
            raise TranscodeError(f"ffmpeg produced no output for {profile.name}", resolution=profile.name)

        if on_progress:
            on_progress(100.0)
        self.logger.info(f"FFMPEG_END: {tag} status=completed elapsed={elapsed:.2f}s")
        return output_path
