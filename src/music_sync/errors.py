"""Exception hierarchy for the music sync pipeline.

Run-fatal errors (config, encoder, manifest, duplicate names) abort the
whole run. File-fatal errors drop a single file from the manifest.
Everything else is absorbed into a per-stage ``StageResult``.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline errors."""


class ConfigError(PipelineError):
    """Invalid or missing configuration."""


class ManifestError(PipelineError):
    """Manifest serialization or write failure."""


class EncoderUnavailableError(PipelineError):
    """The external encoder binary cannot be run at all."""


class StorageError(PipelineError):
    """An object store call failed for a reason other than a missing key."""


class SourceMissingError(PipelineError):
    """A discovered input file disappeared before it could be processed."""


class FileProcessingError(PipelineError):
    """A file produced nothing publishable and is left out of the manifest."""


class DuplicateBaseNameError(PipelineError):
    """Two or more inputs would publish under the same object keys."""

    def __init__(self, collisions: dict[str, list[str]]) -> None:
        details = "; ".join(
            f"{base}: {', '.join(names)}" for base, names in sorted(collisions.items())
        )
        super().__init__(f"Input files share a base name: {details}")
        self.collisions = collisions


class ExternalToolError(PipelineError):
    """An external subprocess (ffmpeg) failed or timed out."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr
