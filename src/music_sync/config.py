"""Pipeline configuration via pydantic-settings (.env + env vars)."""

import os
import sys
from pathlib import Path

from loguru import logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

# Required object store settings, keyed by field name -> env var name
_REQUIRED_STORAGE = {
    "cloudflare_access_key_id": "CLOUDFLARE_ACCESS_KEY_ID",
    "cloudflare_secret_access_key": "CLOUDFLARE_SECRET_ACCESS_KEY",
    "cloudflare_bucket_name": "CLOUDFLARE_BUCKET_NAME",
    "cloudflare_public_url": "CLOUDFLARE_PUBLIC_URL",
}


class SyncConfig(BaseSettings):
    """All pipeline configuration with layered resolution:
    .env file < environment variables < constructor kwargs.

    Frozen: built once at startup and handed to every component.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # -- Directories --
    input_dir: Path = Path("music_content/music_to_sync")
    output_dir: Path = Path("music_content/output_converted")
    cover_art_dir: Path = Path("music_content/cover_art")
    manifest_path: Path = Path("tracks.json")
    log_dir: Path = Path("logs")

    # -- Encoding (label -> kbps, processed in insertion order) --
    qualities: dict[str, int] = {"low": 64, "medium": 128}
    ffmpeg_bin: str = "ffmpeg"
    encoder_timeout: float = 600.0

    # -- Parallelism --
    max_workers: int = 1  # 0 = auto (CPU-based)

    # -- Object store (Cloudflare R2, S3-compatible) --
    cloudflare_account_id: str = ""
    cloudflare_access_key_id: str = ""
    cloudflare_secret_access_key: str = ""
    cloudflare_bucket_name: str = ""
    cloudflare_region: str = "auto"
    cloudflare_endpoint: str = ""
    cloudflare_public_url: str = ""
    network_timeout: float = 60.0
    max_retries: int = 3

    # -- Behavior --
    verbose: bool = False
    log_level: str = "INFO"

    @field_validator("qualities")
    @classmethod
    def _check_qualities(cls, value: dict[str, int]) -> dict[str, int]:
        if not value:
            raise ValueError("at least one quality tier is required")
        for label, kbps in value.items():
            if kbps <= 0:
                raise ValueError(f"bitrate for {label!r} must be positive, got {kbps}")
        return value

    @property
    def endpoint_url(self) -> str:
        """Explicit endpoint, else the account's R2 endpoint."""
        if self.cloudflare_endpoint:
            return self.cloudflare_endpoint
        if self.cloudflare_account_id:
            return f"https://{self.cloudflare_account_id}.r2.cloudflarestorage.com"
        return ""

    @property
    def public_base_url(self) -> str:
        return self.cloudflare_public_url.rstrip("/")

    @property
    def resolved_workers(self) -> int:
        if self.max_workers > 0:
            return self.max_workers
        cpu_count = os.cpu_count() or 1
        return max(1, min(4, cpu_count // 2))

    def missing_storage_settings(self) -> list[str]:
        """Env var names of required object store settings that are unset."""
        missing = [
            env_name
            for field_name, env_name in _REQUIRED_STORAGE.items()
            if not getattr(self, field_name)
        ]
        if not self.endpoint_url:
            missing.append("CLOUDFLARE_ENDPOINT (or CLOUDFLARE_ACCOUNT_ID)")
        return missing

    def require_storage(self) -> None:
        """Raise ConfigError unless every required store setting is present."""
        missing = self.missing_storage_settings()
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    def ensure_dirs(self) -> None:
        """Create all working directories if they don't exist."""
        for d in (
            self.input_dir,
            self.output_dir,
            self.cover_art_dir,
            self.manifest_path.parent,
        ):
            d.mkdir(parents=True, exist_ok=True)

    def setup_logging(self) -> None:
        """Configure loguru for the pipeline."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<10} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        level = "DEBUG" if self.verbose else self.log_level.upper()
        logger.add(
            sys.stderr,
            format=log_format,
            level=level,
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "music-sync.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
