import threading
import pytest
from pathlib import Path
from unittest.mock import patch, MagicMock
from vpp.config.models import EncodingConfig
from vpp.domain.errors import ProcessingCancelled, ThumbnailError, TranscodeError
from vpp.domain.models import RenditionProfile
from vpp.infrastructure.ffmpeg import FFmpegAdapter, thumbnail_name, thumbnail_timestamps

P720 = RenditionProfile(name="720p", width=1280, height=720, video_bitrate="2500k")


def _process(lines, returncode=0):
    process = MagicMock()
    process.stdout = lines
    process.poll.return_value = returncode
    process.wait.return_value = returncode
    process.returncode = returncode
    return process


def test_ffmpeg_command_generation():
    adapter = FFmpegAdapter()
    cmd = adapter._build_command(Path("input.mov"), Path("out/720p.tmp"), P720)

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "input.mov"
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert cmd[cmd.index("-c:a") + 1] == "aac"
    assert cmd[cmd.index("-b:v") + 1] == "2500k"
    assert cmd[cmd.index("-s") + 1] == "1280x720"
    assert cmd[cmd.index("-preset") + 1] == "fast"
    assert cmd[cmd.index("-movflags") + 1] == "+faststart"
    assert cmd[cmd.index("-profile:v") + 1] == "high"
    assert cmd[cmd.index("-level") + 1] == "4.2"
    # Written to .tmp first, format forced since the extension doesn't say mp4
    assert cmd[-3:] == ["-f", "mp4", "out/720p.tmp"]


def test_ffmpeg_command_uses_encoding_config():
    adapter = FFmpegAdapter(EncodingConfig(preset="veryfast", ffmpeg_path="/usr/local/bin/ffmpeg"))
    cmd = adapter._build_command(Path("in.mp4"), Path("o.tmp"), P720)
    assert cmd[0] == "/usr/local/bin/ffmpeg"
    assert cmd[cmd.index("-preset") + 1] == "veryfast"


def test_ffmpeg_encode_success_reports_progress(tmp_path):
    output = tmp_path / "videos" / "720p.mp4"
    output.parent.mkdir()
    output.with_suffix(".tmp").write_bytes(b"encoded")
    lines = [
        "frame=  50 fps=25 q=28.0 size=  256kB time=00:00:02.50 bitrate= 838.9kbits/s speed=1.0x\n",
        "frame= 100 fps=25 q=28.0 size=  512kB time=00:00:05.00 bitrate= 838.9kbits/s speed=1.0x\n",
        "frame= 210 fps=25 q=28.0 size= 1024kB time=00:00:10.20 bitrate= 838.9kbits/s speed=1.0x\n",
    ]
    updates = []

    with patch("subprocess.Popen", return_value=_process(lines)) as mock_popen:
        result = FFmpegAdapter().encode(tmp_path / "in.mp4", output, P720, on_progress=updates.append, duration=10.0)

    assert mock_popen.called
    assert result == output
    assert output.read_bytes() == b"encoded"
    assert not output.with_suffix(".tmp").exists()
    assert updates[:2] == [pytest.approx(25.0), pytest.approx(50.0)]
    # Overshoot is clamped, terminal callback is 100
    assert updates[2] == 100.0
    assert updates[-1] == 100.0


def test_ffmpeg_encode_without_duration_only_reports_completion(tmp_path):
    output = tmp_path / "360p.mp4"
    output.with_suffix(".tmp").write_bytes(b"encoded")
    updates = []
    with patch("subprocess.Popen", return_value=_process(["time=00:00:01.00\n"])):
        FFmpegAdapter().encode(tmp_path / "in.mp4", output, P720, on_progress=updates.append, duration=0.0)
    assert updates == [100.0]


def test_ffmpeg_encode_failure(tmp_path):
    output = tmp_path / "720p.mp4"
    tmp_output = output.with_suffix(".tmp")
    tmp_output.write_bytes(b"partial")
    updates = []

    with patch("subprocess.Popen", return_value=_process(["Error while opening encoder\n"], returncode=1)):
        with pytest.raises(TranscodeError) as exc_info:
            FFmpegAdapter().encode(tmp_path / "in.mp4", output, P720, on_progress=updates.append, duration=10.0)

    assert "ffmpeg exited with code 1" in str(exc_info.value)
    assert "Error while opening encoder" in str(exc_info.value)
    assert exc_info.value.resolution == "720p"
    assert exc_info.value.returncode == 1
    assert not tmp_output.exists()
    assert not output.exists()
    assert 100.0 not in updates


def test_ffmpeg_encode_missing_output_is_failure(tmp_path):
    with patch("subprocess.Popen", return_value=_process([])):
        with pytest.raises(TranscodeError, match="no output"):
            FFmpegAdapter().encode(tmp_path / "in.mp4", tmp_path / "720p.mp4", P720)


def test_ffmpeg_encode_binary_missing(tmp_path):
    with patch("subprocess.Popen", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(TranscodeError, match="Could not run ffmpeg"):
            FFmpegAdapter().encode(tmp_path / "in.mp4", tmp_path / "720p.mp4", P720)


def test_ffmpeg_encode_cancel_event_interrupts(tmp_path):
    output = tmp_path / "720p.mp4"
    tmp_output = output.with_suffix(".tmp")
    tmp_output.write_bytes(b"tmp")

    cancel_event = threading.Event()
    cancel_event.set()

    process_instance = _process([])
    process_instance.poll.return_value = None

    with patch("subprocess.Popen", return_value=process_instance):
        with pytest.raises(ProcessingCancelled):
            FFmpegAdapter().encode(tmp_path / "in.mp4", output, P720, cancel_event=cancel_event)

    assert process_instance.terminate.called
    assert not tmp_output.exists()


def test_thumbnail_timestamps():
    assert thumbnail_timestamps(10.0, 1) == [5.0]
    assert thumbnail_timestamps(9.0, 2) == [3.0, 6.0]
    assert thumbnail_timestamps(None, 2) == [0.0, 0.0]
    assert thumbnail_name(Path("/tmp/abc.def.mp4"), 1) == "abc.def_thumb_1.png"


def test_extract_frames_commands(tmp_path):
    out_dir = tmp_path / "thumbs"
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 0
        paths = FFmpegAdapter().extract_frames(Path("clip.mp4"), out_dir, 2, duration=9.0, size="160x120")

    assert out_dir.is_dir()
    assert paths == [out_dir / "clip_thumb_1.png", out_dir / "clip_thumb_2.png"]
    first_cmd = mock_run.call_args_list[0][0][0]
    assert first_cmd[first_cmd.index("-ss") + 1] == "3.000"
    assert first_cmd[first_cmd.index("-s") + 1] == "160x120"
    assert first_cmd[first_cmd.index("-frames:v") + 1] == "1"
    assert first_cmd[-1] == str(out_dir / "clip_thumb_1.png")


def test_extract_frames_failure(tmp_path):
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "line one\nOutput file is empty, nothing was encoded"
        with pytest.raises(ThumbnailError, match="nothing was encoded"):
            FFmpegAdapter().extract_frames(Path("clip.mp4"), tmp_path, 1, duration=1.0)
