"""Music Sync -- transcode a local music folder, publish it to R2, emit tracks.json.

Core modules:
    config     -- Pipeline configuration via pydantic-settings (CLOUDFLARE_* env
                  vars for the object store). Frozen once built.
    cli        -- Click CLI entry point. CLI flags passed as kwargs to SyncConfig.
    runner     -- Input discovery, bounded worker pool, manifest hand-off.
    publisher  -- Per-file extract -> artwork -> transcode -> upload orchestration.
    metadata   -- Tag and first-picture extraction via mutagen, never raises.
    encoder    -- ffmpeg subprocess behind an Encoder protocol.
    transcode  -- One MP3 variant per configured quality tier, skip-if-present.
    storage    -- boto3 S3 gateway: exists, put (public-read), public URLs.
    manifest   -- tracks.json assembly and atomic write.
    models     -- Enums, constants, and frozen value types.
    errors     -- Exception hierarchy (run-fatal, file-fatal, stage errors).
"""

__version__ = "0.1.0"
