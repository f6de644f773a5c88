"""Per-file orchestration: extract -> artwork -> transcode -> upload.

Failure model:
    stage-level  -- bad tags, a failed variant encode, a failed upload or
                    existence check. Absorbed into fallback metadata or a
                    per-quality StageResult; the file is still published.
    file-level   -- the source vanished, or no variant could be encoded
                    at all. Raised to the caller, which drops the file
                    from the manifest and moves on.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click
from loguru import logger

from .errors import FileProcessingError, SourceMissingError, StorageError
from .metadata import extract_metadata
from .models import (
    PublishedTrack,
    SourceFile,
    StageResult,
    TrackMetadata,
    UploadedObject,
    cover_key,
)

if TYPE_CHECKING:
    from .config import SyncConfig
    from .storage import ObjectStore
    from .transcode import Transcoder

log = logger.bind(stage="publish")


class Publisher:
    def __init__(
        self, config: SyncConfig, transcoder: Transcoder, store: ObjectStore,
    ) -> None:
        self.config = config
        self.transcoder = transcoder
        self.store = store

    def publish(self, source: SourceFile) -> PublishedTrack:
        """Carry one source file through every stage.

        Raises SourceMissingError or FileProcessingError when the file
        cannot be published at all.
        """
        self._require_source(source)
        click.echo(f"\n  Processing: {source.base_name}")

        metadata = extract_metadata(source)
        cover_path = self._stage_artwork(source, metadata)

        self._require_source(source)
        artifacts = self.transcoder.transcode(source)
        if not any(r.ok for r in artifacts.values()):
            raise FileProcessingError(
                f"every quality variant failed to encode for {source.path.name}"
            )

        qualities: dict[str, StageResult[UploadedObject]] = {}
        for quality, encoded in artifacts.items():
            if not encoded.ok or encoded.value is None:
                qualities[quality] = StageResult.failure(encoded.error or "encode failed")
                continue
            result = self._upload(encoded.value.path, encoded.value.key)
            self._report_upload(quality, result)
            qualities[quality] = result

        cover_art = None
        if cover_path is not None:
            cover_result = self._upload(cover_path, cover_path.name)
            self._report_upload("cover", cover_result)
            if cover_result.ok:
                cover_art = cover_path.name

        return PublishedTrack(
            base_name=source.base_name,
            metadata=metadata,
            cover_art=cover_art,
            qualities=qualities,
        )

    def _require_source(self, source: SourceFile) -> None:
        if not source.path.is_file():
            raise SourceMissingError(f"Source file vanished: {source.path}")

    def _stage_artwork(self, source: SourceFile, metadata: TrackMetadata) -> Path | None:
        """Write embedded artwork to the cover-art directory, if any."""
        if not metadata.artwork:
            return None
        cover_path = self.config.cover_art_dir / cover_key(source.base_name)
        try:
            cover_path.write_bytes(metadata.artwork)
        except OSError as exc:
            click.echo(f"    WARN: could not save cover art: {exc}")
            log.warning(f"Could not save cover art for {source.base_name}: {exc}")
            return None
        log.debug(f"Saved cover art {cover_path} ({len(metadata.artwork)} bytes)")
        return cover_path

    def _upload(self, path: Path, key: str) -> StageResult[UploadedObject]:
        """Upload ``path`` under ``key`` unless the store already has it.

        The existence check and the put run under the key's lock, so two
        workers never both upload the same key.
        """
        with self.store.key_lock(key):
            try:
                present = self.store.exists(key)
            except StorageError as exc:
                log.error(f"Existence check failed for {key}: {exc}")
                return StageResult.failure(str(exc))

            if present:
                size = path.stat().st_size if path.exists() else 0
                return StageResult.success(
                    UploadedObject(key=key, url=self.store.public_url(key), size=size),
                    skipped=True,
                )
            return self.store.put(path, key)

    def _report_upload(self, label: str, result: StageResult[UploadedObject]) -> None:
        if not result.ok:
            click.echo(f"    ERROR {label} upload: {result.error}")
        elif result.skipped:
            click.echo(f"    SKIP {label}: already in bucket")
        elif result.value is not None:
            size_mb = result.value.size / (1024 * 1024)
            click.echo(f"    UPLOADED {label}: {size_mb:.2f}MB")
