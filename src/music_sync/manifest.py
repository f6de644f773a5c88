"""Playback manifest (tracks.json) generation.

Each run fully replaces the previous document. The write is atomic: a
temp file in the target directory is renamed over the old manifest, so
readers see either the old document or the complete new one.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from loguru import logger

from .errors import ManifestError
from .models import MANIFEST_QUALITIES, STREAM_PRECEDENCE, PublishedTrack

log = logger.bind(stage="manifest")


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def select_stream_url(urls: Mapping[str, str | None]) -> str | None:
    """Pick the default playback URL: medium, then low, then high."""
    for quality in STREAM_PRECEDENCE:
        url = urls.get(quality)
        if url:
            return url
    return None


def build_entry(index: int, track: PublishedTrack, timestamp: str) -> dict[str, Any]:
    meta = track.metadata
    labels = list(MANIFEST_QUALITIES) + [
        q for q in track.qualities if q not in MANIFEST_QUALITIES
    ]
    urls = {label: track.url_for(label) for label in labels}
    return {
        "id": index,
        "title": meta.title,
        "artist": meta.artist,
        "album": meta.album,
        "genre": meta.genre,
        "year": meta.year,
        "track": meta.track,
        "filename": track.base_name,
        "coverArt": track.cover_art,
        "qualities": urls,
        "streamUrl": select_stream_url(urls),
        "uploadedAt": timestamp,
    }


def build_manifest(
    tracks: Iterable[PublishedTrack], generated_at: str | None = None,
) -> dict[str, Any]:
    """Assemble the manifest document. IDs are 1-based in the given order."""
    timestamp = generated_at or _utcnow()
    entries = [build_entry(i, track, timestamp) for i, track in enumerate(tracks, 1)]
    return {
        "totalTracks": len(entries),
        "generatedAt": timestamp,
        "tracks": entries,
    }


def write_manifest(path: Path, document: dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``document``. Raises ManifestError."""
    try:
        payload = json.dumps(document, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ManifestError(f"Failed to serialize manifest: {exc}") from exc

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    except OSError as exc:
        raise ManifestError(f"Failed to write manifest {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException as exc:
        # Clean up temp file on any failure
        try:
            os.unlink(tmp_path)
        except OSError as cleanup_err:
            log.warning(f"Failed to cleanup temp file {tmp_path}: {cleanup_err}")
        if isinstance(exc, OSError):
            raise ManifestError(f"Failed to write manifest {path}: {exc}") from exc
        raise

    log.info(f"Wrote manifest {path} ({document.get('totalTracks', 0)} tracks)")
