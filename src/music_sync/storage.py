"""Object store gateway -- S3-compatible (Cloudflare R2) via boto3.

Three operations: ``exists``, ``put`` and ``public_url``. Content type is
resolved from the key's extension. ``key_lock`` lets callers serialize
the exists-then-put sequence per key when several workers share a store.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .errors import StorageError
from .models import (
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    StageResult,
    UploadedObject,
)

if TYPE_CHECKING:
    from .config import SyncConfig

log = logger.bind(stage="storage")

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def content_type_for(key: str) -> str:
    """MIME type for a key's extension, defaulting to generic audio."""
    return CONTENT_TYPES.get(Path(key).suffix.lower(), DEFAULT_CONTENT_TYPE)


class ObjectStore:
    """Thin gateway over a boto3 S3 client bound to one bucket."""

    def __init__(self, client, bucket: str, public_base_url: str) -> None:
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: SyncConfig) -> ObjectStore:
        """Build an R2 client from config. Raises ConfigError if incomplete."""
        config.require_storage()
        client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.cloudflare_access_key_id,
            aws_secret_access_key=config.cloudflare_secret_access_key,
            region_name=config.cloudflare_region,  # R2 uses 'auto'
            config=Config(
                signature_version="s3v4",
                connect_timeout=config.network_timeout,
                read_timeout=config.network_timeout,
                retries={"max_attempts": config.max_retries, "mode": "standard"},
            ),
        )
        log.debug(
            f"S3 client: endpoint={config.endpoint_url} "
            f"bucket={config.cloudflare_bucket_name}"
        )
        return cls(client, config.cloudflare_bucket_name, config.public_base_url)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    @contextmanager
    def key_lock(self, key: str) -> Iterator[None]:
        """Hold an exclusive lock for one object key."""
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield

    def exists(self, key: str) -> bool:
        """Check whether ``key`` is present in the bucket.

        A missing key returns False. Any other failure raises StorageError
        so callers never mistake an outage for absence.
        """
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if str(error.get("Code", "")) in _NOT_FOUND_CODES or status == 404:
                log.debug(f"HEAD {key}: absent")
                return False
            raise StorageError(f"HEAD {key} failed: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"HEAD {key} failed: {exc}") from exc
        log.debug(f"HEAD {key}: present")
        return True

    def put(
        self, path: Path, key: str, content_type: str | None = None,
    ) -> StageResult[UploadedObject]:
        """Upload ``path`` as a public-read object under ``key``.

        Success is only reported once the store has acknowledged the
        whole object.
        """
        content_type = content_type or content_type_for(key)
        try:
            size = path.stat().st_size
            with path.open("rb") as body:
                self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                    ACL="public-read",
                )
        except (ClientError, BotoCoreError, OSError) as exc:
            log.error(f"PUT {key} failed: {exc}")
            return StageResult.failure(f"Upload failed for {key}: {exc}")

        log.info(f"PUT {key} ({size} bytes, {content_type})")
        return StageResult.success(
            UploadedObject(key=key, url=self.public_url(key), size=size)
        )
