"""Tests for encoder.py -- ffmpeg subprocess wrapper."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from music_sync.encoder import FfmpegEncoder
from music_sync.errors import EncoderUnavailableError, ExternalToolError


def _mock_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr,
    )


class TestCheckAvailable:
    @patch("music_sync.encoder.subprocess.run")
    def test_available(self, mock_run):
        mock_run.return_value = _mock_result(stdout="ffmpeg version 6.1\n")
        FfmpegEncoder().check_available()
        assert mock_run.call_args.args[0] == ["ffmpeg", "-version"]

    @patch("music_sync.encoder.subprocess.run")
    def test_checked_once(self, mock_run):
        mock_run.return_value = _mock_result(stdout="ffmpeg version 6.1\n")
        encoder = FfmpegEncoder()
        encoder.check_available()
        encoder.check_available()
        assert mock_run.call_count == 1

    @patch("music_sync.encoder.subprocess.run", side_effect=FileNotFoundError("ffmpeg"))
    def test_missing_binary(self, mock_run):
        with pytest.raises(EncoderUnavailableError, match="not found"):
            FfmpegEncoder().check_available()

    @patch("music_sync.encoder.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = _mock_result(returncode=1)
        with pytest.raises(EncoderUnavailableError):
            FfmpegEncoder().check_available()


class TestBuildCommand:
    def test_command_shape(self):
        cmd = FfmpegEncoder("ffmpeg").build_command(Path("in.flac"), Path("out.mp3"), 128)
        assert cmd[0] == "ffmpeg"
        assert "-nostdin" in cmd
        assert "-y" in cmd
        assert cmd[cmd.index("-b:a") + 1] == "128k"
        assert cmd[cmd.index("-map_metadata") + 1] == "0"
        assert cmd[cmd.index("-i") + 1] == "in.flac"
        assert cmd[-1] == "out.mp3"


class TestEncode:
    def test_success_renames_into_place(self, tmp_path):
        output = tmp_path / "song_low.mp3"

        def _fake_run(cmd, **kwargs):
            Path(cmd[-1]).write_bytes(b"mp3")
            return _mock_result()

        with patch("music_sync.encoder.subprocess.run", side_effect=_fake_run) as mock_run:
            FfmpegEncoder(timeout=30).encode(tmp_path / "song.flac", output, 64)

        assert output.read_bytes() == b"mp3"
        assert not list(tmp_path.glob("*.part"))
        assert mock_run.call_args.kwargs["timeout"] == 30

    def test_failure_raises_and_cleans_up(self, tmp_path):
        output = tmp_path / "song_low.mp3"

        def _fake_run(cmd, **kwargs):
            Path(cmd[-1]).write_bytes(b"partial")
            return _mock_result(returncode=1, stderr="Invalid data found")

        with patch("music_sync.encoder.subprocess.run", side_effect=_fake_run):
            with pytest.raises(ExternalToolError, match="Invalid data") as exc_info:
                FfmpegEncoder().encode(tmp_path / "song.flac", output, 64)

        assert exc_info.value.exit_code == 1
        assert not output.exists()
        assert not list(tmp_path.glob(".*.part"))

    def test_timeout_raises(self, tmp_path):
        output = tmp_path / "song_low.mp3"
        with patch(
            "music_sync.encoder.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=5),
        ):
            with pytest.raises(ExternalToolError, match="timed out"):
                FfmpegEncoder(timeout=5).encode(tmp_path / "song.flac", output, 64)
        assert not output.exists()
