"""Core enums, constants, and value types for the music sync pipeline.

Enums:
    ExitCode  -- Process exit status for a finished run.

Stage outputs are frozen dataclasses: once a stage produces one it is
never mutated, only replaced by the next stage's output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Generic, TypeVar

T = TypeVar("T")


class ExitCode(IntEnum):
    OK = 0
    FAILED = 1
    PARTIAL = 3


AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".wav",
        ".flac",
        ".m4a",
        ".aac",
        ".ogg",
    }
)

CONTENT_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".ogg": "audio/ogg",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}

# Unknown extensions still upload as generic audio
DEFAULT_CONTENT_TYPE = "audio/mpeg"

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_GENRE = "Unknown Genre"

# Playback tier precedence for the manifest streamUrl
STREAM_PRECEDENCE: tuple[str, ...] = ("medium", "low", "high")

# Quality labels always present in a manifest entry (null when missing)
MANIFEST_QUALITIES: tuple[str, ...] = ("low", "medium", "high")


def artifact_key(base_name: str, quality: str) -> str:
    """Object key (and local filename) for one encoded quality variant."""
    return f"{base_name}_{quality}.mp3"


def cover_key(base_name: str) -> str:
    """Object key (and local filename) for a track's cover art."""
    return f"{base_name}_cover.jpg"


@dataclass(frozen=True)
class SourceFile:
    """One local audio input discovered in the input directory."""

    base_name: str
    path: Path
    extension: str

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        path = path.resolve()
        return cls(base_name=path.stem, path=path, extension=path.suffix.lower())


@dataclass(frozen=True)
class TrackMetadata:
    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    genre: str = UNKNOWN_GENRE
    year: int | None = None
    track: int | None = None
    artwork: bytes | None = field(default=None, repr=False)

    @classmethod
    def fallback(cls, base_name: str) -> TrackMetadata:
        """Defaults used when a file's tags cannot be read."""
        return cls(title=base_name)


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one stage for one unit of work.

    Exactly one of ``value`` / ``error`` is set. ``skipped`` marks a
    success that reused existing state (local file or remote object)
    instead of doing the work again.
    """

    value: T | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, skipped: bool = False) -> StageResult[T]:
        return cls(value=value, skipped=skipped)

    @classmethod
    def failure(cls, error: str) -> StageResult[T]:
        return cls(error=error)


@dataclass(frozen=True)
class EncodedArtifact:
    key: str
    path: Path
    size: int

    @property
    def size_mb(self) -> float:
        return round(self.size / (1024 * 1024), 2)


@dataclass(frozen=True)
class UploadedObject:
    key: str
    url: str
    size: int


@dataclass(frozen=True)
class PublishedTrack:
    """Everything the manifest needs to know about one processed file."""

    base_name: str
    metadata: TrackMetadata
    cover_art: str | None
    qualities: dict[str, StageResult[UploadedObject]]

    def url_for(self, quality: str) -> str | None:
        result = self.qualities.get(quality)
        if result is None or not result.ok or result.value is None:
            return None
        return result.value.url

    @property
    def uploaded_count(self) -> int:
        return sum(1 for r in self.qualities.values() if r.ok)


@dataclass
class RunSummary:
    """Result summary from one pipeline run."""

    found: int = 0
    published: int = 0
    failed: int = 0
    elapsed: float = 0.0
    manifest_written: bool = False
    manifest_path: Path | None = None

    @property
    def nothing_to_do(self) -> bool:
        return self.found == 0

    @property
    def exit_code(self) -> ExitCode:
        if self.nothing_to_do or self.failed == 0:
            return ExitCode.OK
        if self.published == 0:
            return ExitCode.FAILED
        return ExitCode.PARTIAL
