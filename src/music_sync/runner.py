"""Pipeline runner -- discovers inputs, fans out to the publisher, writes the manifest."""

from __future__ import annotations

import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

import click
from loguru import logger

from .config import SyncConfig
from .encoder import Encoder, FfmpegEncoder
from .errors import DuplicateBaseNameError
from .manifest import build_manifest, write_manifest
from .models import AUDIO_EXTENSIONS, PublishedTrack, RunSummary, SourceFile
from .publisher import Publisher
from .storage import ObjectStore
from .transcode import Transcoder

log = logger.bind(stage="runner")


def discover_sources(
    input_dir: Path, extensions: frozenset[str] = AUDIO_EXTENSIONS,
) -> list[SourceFile]:
    """Audio files directly inside ``input_dir``, sorted by filename."""
    if not input_dir.is_dir():
        return []
    return [
        SourceFile.from_path(p)
        for p in sorted(input_dir.iterdir(), key=lambda p: p.name)
        if p.is_file() and p.suffix.lower() in extensions
    ]


def check_unique_base_names(sources: list[SourceFile]) -> None:
    """Reject inputs whose extension-stripped names collide.

    ``track.mp3`` and ``track.flac`` would both publish ``track_low.mp3``,
    so the run refuses to start rather than let one overwrite the other.
    """
    groups: dict[str, list[str]] = defaultdict(list)
    for source in sources:
        groups[source.base_name].append(source.path.name)
    collisions = {base: names for base, names in groups.items() if len(names) > 1}
    if collisions:
        raise DuplicateBaseNameError(collisions)


class PipelineRunner:
    """Runs one sync pass over the configured input directory."""

    def __init__(
        self,
        config: SyncConfig,
        encoder: Encoder | None = None,
        store: ObjectStore | None = None,
    ) -> None:
        self.config = config
        self.encoder = encoder or FfmpegEncoder(
            config.ffmpeg_bin, timeout=config.encoder_timeout,
        )
        self.store = store or ObjectStore.from_config(config)
        self.publisher = Publisher(
            config, Transcoder(config, self.encoder), self.store,
        )

    def run(self) -> RunSummary:
        """Process every discovered file and write the manifest.

        Raises run-fatal PipelineErrors (encoder missing, duplicate base
        names, manifest write failure). Per-file failures are counted in
        the returned summary instead.
        """
        start = time.monotonic()
        summary = RunSummary(manifest_path=self.config.manifest_path)

        self.encoder.check_available()
        self.config.ensure_dirs()

        sources = discover_sources(self.config.input_dir)
        summary.found = len(sources)
        if not sources:
            click.echo(f"No audio files found in {self.config.input_dir}")
            log.info("Nothing to do")
            summary.elapsed = time.monotonic() - start
            return summary

        check_unique_base_names(sources)

        workers = min(self.config.resolved_workers, len(sources))
        click.echo(f"Found {len(sources)} audio files to process")
        log.info(f"Starting sync: {len(sources)} files, max_workers={workers}")

        tracks = self._process_all(sources, workers)
        summary.published = len(tracks)
        summary.failed = len(sources) - len(tracks)

        if tracks:
            write_manifest(self.config.manifest_path, build_manifest(tracks))
            summary.manifest_written = True
            click.echo(f"\nGenerated {self.config.manifest_path} with {len(tracks)} tracks")
        else:
            log.warning("No files published; leaving existing manifest untouched")

        summary.elapsed = time.monotonic() - start
        return summary

    def _process_all(self, sources: list[SourceFile], workers: int) -> list[PublishedTrack]:
        """Publish every source on a bounded pool, keeping discovery order.

        Results are only collected here, in the calling thread. Ctrl-C
        cancels files not yet started and lets in-flight ones finish.
        """
        results: dict[int, PublishedTrack] = {}
        executor = ThreadPoolExecutor(max_workers=workers)
        futures: dict[Future, int] = {
            executor.submit(self._publish_safe, source): i
            for i, source in enumerate(sources)
        }
        try:
            for future in as_completed(futures):
                track = future.result()
                if track is not None:
                    results[futures[future]] = track
        except KeyboardInterrupt:
            log.warning("Interrupted; cancelling queued files")
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return [results[i] for i in sorted(results)]

    def _publish_safe(self, source: SourceFile) -> PublishedTrack | None:
        """Wrapper for Publisher.publish that turns file-level failures into None."""
        try:
            return self.publisher.publish(source)
        except Exception as e:
            click.echo(f"  ERROR: {source.path.name}: {e}")
            log.error(f"Error processing {source.path.name}: {e}")
            return None
