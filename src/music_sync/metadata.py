"""Tag and artwork extraction via mutagen.

``extract_metadata`` never raises: any failure to open or parse a file
yields filename-derived defaults so the file can still be published.
"""

from __future__ import annotations

import base64
import re
from dataclasses import replace
from pathlib import Path

from loguru import logger
from mutagen import File as MutagenFile
from mutagen.flac import Picture
from mutagen.id3 import ID3

from .models import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    UNKNOWN_GENRE,
    SourceFile,
    TrackMetadata,
)

log = logger.bind(stage="extract")

_YEAR_RE = re.compile(r"^\s*(\d{4})")
_TRACK_RE = re.compile(r"^\s*(\d+)")

# Raw ID3 frames for the easy keys (WAVE and AAC files are not wrapped
# in EasyID3 by mutagen)
_ID3_FRAMES = {
    "title": "TIT2",
    "artist": "TPE1",
    "album": "TALB",
    "genre": "TCON",
    "date": "TDRC",
    "tracknumber": "TRCK",
}


def _first(tags, key: str) -> str | None:
    """First non-empty value for an easy-tag key, or None."""
    if isinstance(tags, ID3):
        frame = tags.get(_ID3_FRAMES[key])
        if frame is None or not frame.text:
            return None
        text = str(frame.text[0]).strip()
        return text or None
    try:
        value = tags.get(key)
    except (KeyError, ValueError):
        return None
    if not value:
        return None
    if isinstance(value, list):
        value = value[0]
    text = str(value).strip()
    return text or None


def _parse_int(raw: str | None, pattern: re.Pattern) -> int | None:
    if not raw:
        return None
    match = pattern.match(raw)
    return int(match.group(1)) if match else None


def first_picture(path: Path) -> bytes | None:
    """Return the first embedded picture's bytes, or None.

    Only the first picture is used when a file embeds several.
    """
    audio = MutagenFile(path)
    if audio is None:
        return None

    # FLAC picture blocks
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return pictures[0].data

    tags = audio.tags
    if tags is None:
        return None

    # ID3 (mp3, wav, aac)
    if hasattr(tags, "getall"):
        frames = tags.getall("APIC")
        return frames[0].data if frames else None

    # MP4 atoms (m4a)
    covers = tags.get("covr")
    if covers:
        return bytes(covers[0])

    # Vorbis comments (ogg)
    blocks = tags.get("metadata_block_picture")
    if blocks:
        return Picture(base64.b64decode(blocks[0])).data

    return None


def extract_metadata(source: SourceFile) -> TrackMetadata:
    """Read descriptive tags and the first embedded picture from a file.

    Missing tags fall back per field: title to the base name, artist,
    album and genre to fixed placeholders. Unreadable files fall back
    entirely.
    """
    log.debug(f"extract_metadata(path={source.path})")
    try:
        audio = MutagenFile(source.path, easy=True)
        if audio is None:
            raise ValueError(f"unrecognized audio format: {source.path.name}")
        tags = audio.tags or {}

        metadata = TrackMetadata(
            title=_first(tags, "title") or source.base_name,
            artist=_first(tags, "artist") or UNKNOWN_ARTIST,
            album=_first(tags, "album") or UNKNOWN_ALBUM,
            genre=_first(tags, "genre") or UNKNOWN_GENRE,
            year=_parse_int(_first(tags, "date"), _YEAR_RE),
            track=_parse_int(_first(tags, "tracknumber"), _TRACK_RE),
        )
    except Exception as exc:
        log.warning(f"Could not extract metadata from {source.path.name}: {exc}")
        return TrackMetadata.fallback(source.base_name)

    # A broken picture block costs only the artwork, never the tags
    try:
        metadata = replace(metadata, artwork=first_picture(source.path))
    except Exception as exc:
        log.warning(f"Could not read artwork from {source.path.name}: {exc}")

    log.debug(
        f"Tags for {source.path.name}: title={metadata.title!r} "
        f"artist={metadata.artist!r} artwork={metadata.artwork is not None}"
    )
    return metadata
