"""Transcoding engine -- one MP3 variant per configured quality tier."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from loguru import logger

from .errors import ExternalToolError
from .models import EncodedArtifact, SourceFile, StageResult, artifact_key

if TYPE_CHECKING:
    from .config import SyncConfig
    from .encoder import Encoder

log = logger.bind(stage="transcode")


class Transcoder:
    """Produce every quality variant for one source file.

    Variants are processed in the configured order. An output that already
    exists locally is reused as-is; a failed variant never stops the rest.
    """

    def __init__(self, config: SyncConfig, encoder: Encoder) -> None:
        self.config = config
        self.encoder = encoder

    def transcode(
        self, source: SourceFile, base_name: str | None = None,
    ) -> dict[str, StageResult[EncodedArtifact]]:
        base_name = base_name or source.base_name
        results: dict[str, StageResult[EncodedArtifact]] = {}

        for quality, kbps in self.config.qualities.items():
            key = artifact_key(base_name, quality)
            output = self.config.output_dir / key

            if output.exists():
                click.echo(f"    SKIP {quality}: already encoded")
                log.debug(f"Reusing existing {output}")
                results[quality] = StageResult.success(
                    EncodedArtifact(key=key, path=output, size=output.stat().st_size),
                    skipped=True,
                )
                continue

            try:
                self.encoder.encode(source.path, output, kbps)
            except ExternalToolError as exc:
                click.echo(f"    ERROR {quality}: {exc}")
                log.error(f"Encoding {key} failed: {exc}")
                results[quality] = StageResult.failure(str(exc))
                continue

            if not output.is_file():
                log.error(f"Encoder reported success but {output} is missing")
                results[quality] = StageResult.failure(f"no output produced for {key}")
                continue

            artifact = EncodedArtifact(key=key, path=output, size=output.stat().st_size)
            click.echo(f"    {quality}: {artifact.size_mb:.2f}MB ({kbps}k)")
            log.info(f"Encoded {key} ({artifact.size} bytes)")
            results[quality] = StageResult.success(artifact)

        return results
