"""External encoder capability -- ffmpeg wrapped as a subprocess.

The transcoding engine only depends on the ``Encoder`` protocol, so tests
can swap in a fake that never spawns a process.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Protocol

from loguru import logger

from .errors import EncoderUnavailableError, ExternalToolError

log = logger.bind(stage="transcode")


class Encoder(Protocol):
    def check_available(self) -> None:
        """Raise EncoderUnavailableError if the encoder cannot run at all."""

    def encode(self, source: Path, output: Path, bitrate_kbps: int) -> None:
        """Encode ``source`` to ``output`` or raise ExternalToolError."""


class FfmpegEncoder:
    """MP3 encoder backed by the ffmpeg binary."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout: float | None = None) -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout = timeout
        self._checked = False

    def check_available(self) -> None:
        if self._checked:
            return
        try:
            result = subprocess.run(
                [self.ffmpeg_bin, "-version"],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise EncoderUnavailableError(
                f"{self.ffmpeg_bin} not found or not runnable: {exc}"
            ) from exc
        if result.returncode != 0:
            raise EncoderUnavailableError(
                f"{self.ffmpeg_bin} -version exited with code {result.returncode}"
            )
        first_line = result.stdout.splitlines()[0] if result.stdout else ""
        log.info(f"Using encoder: {first_line or self.ffmpeg_bin}")
        self._checked = True

    def build_command(self, source: Path, output: Path, bitrate_kbps: int) -> list[str]:
        return [
            self.ffmpeg_bin,
            "-nostdin",
            "-y",
            "-v",
            "error",
            "-i",
            str(source),
            "-map",
            "0:a:0",
            "-map_metadata",
            "0",
            "-c:a",
            "libmp3lame",
            "-b:a",
            f"{bitrate_kbps}k",
            "-f",
            "mp3",
            str(output),
        ]

    def encode(self, source: Path, output: Path, bitrate_kbps: int) -> None:
        """Encode into a temp sibling, then rename into place on success.

        A failed or timed-out encode leaves nothing at ``output``.
        """
        tmp_output = output.with_name(f".{output.name}.part")
        cmd = self.build_command(source, tmp_output, bitrate_kbps)
        log.debug(f"run_cmd args={' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            tmp_output.unlink(missing_ok=True)
            raise ExternalToolError(
                tool=self.ffmpeg_bin,
                exit_code=-1,
                stderr=f"timed out after {exc.timeout}s",
            ) from exc
        except OSError as exc:
            tmp_output.unlink(missing_ok=True)
            raise ExternalToolError(
                tool=self.ffmpeg_bin, exit_code=-1, stderr=str(exc),
            ) from exc

        if result.returncode != 0:
            tmp_output.unlink(missing_ok=True)
            raise ExternalToolError(
                tool=self.ffmpeg_bin,
                exit_code=result.returncode,
                stderr=result.stderr[-500:].strip(),
            )

        os.replace(tmp_output, output)
