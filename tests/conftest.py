"""Shared fixtures: isolated config, fake encoder, in-memory S3 client."""

from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from music_sync.config import SyncConfig
from music_sync.errors import EncoderUnavailableError, ExternalToolError
from music_sync.storage import ObjectStore

# Env vars that pydantic-settings reads -- cleaned so tests see only what they set
_CONFIG_ENV_VARS = [
    "INPUT_DIR", "OUTPUT_DIR", "COVER_ART_DIR", "MANIFEST_PATH", "LOG_DIR",
    "QUALITIES", "FFMPEG_BIN", "ENCODER_TIMEOUT", "MAX_WORKERS",
    "CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_ACCESS_KEY_ID",
    "CLOUDFLARE_SECRET_ACCESS_KEY", "CLOUDFLARE_BUCKET_NAME",
    "CLOUDFLARE_REGION", "CLOUDFLARE_ENDPOINT", "CLOUDFLARE_PUBLIC_URL",
    "NETWORK_TIMEOUT", "MAX_RETRIES", "VERBOSE", "LOG_LEVEL",
]

PUBLIC_URL = "https://cdn.example.com"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in _CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def make_config(tmp_path: Path, **overrides) -> SyncConfig:
    values = {
        "_env_file": None,
        "input_dir": tmp_path / "in",
        "output_dir": tmp_path / "out",
        "cover_art_dir": tmp_path / "covers",
        "manifest_path": tmp_path / "tracks.json",
        "log_dir": tmp_path / "logs",
        "cloudflare_account_id": "acct",
        "cloudflare_access_key_id": "key-id",
        "cloudflare_secret_access_key": "secret",
        "cloudflare_bucket_name": "music",
        "cloudflare_public_url": PUBLIC_URL,
    }
    values.update(overrides)
    return SyncConfig(**values)


@pytest.fixture
def config(tmp_path):
    cfg = make_config(tmp_path)
    cfg.ensure_dirs()
    return cfg


class FakeEncoder:
    """Writes a few bytes per variant; fails for selected bitrates or inputs."""

    def __init__(self, fail_bitrates=(), fail_sources=(), available=True):
        self.fail_bitrates = set(fail_bitrates)
        self.fail_sources = set(fail_sources)
        self.available = available
        self.calls: list[tuple[Path, Path, int]] = []

    def check_available(self) -> None:
        if not self.available:
            raise EncoderUnavailableError("ffmpeg not found")

    def encode(self, source: Path, output: Path, bitrate_kbps: int) -> None:
        self.calls.append((source, output, bitrate_kbps))
        if bitrate_kbps in self.fail_bitrates or source.name in self.fail_sources:
            raise ExternalToolError(tool="ffmpeg", exit_code=1, stderr="boom")
        output.write_bytes(b"\xff\xfb" * bitrate_kbps)


def client_error(code: str, status: int, operation: str = "HeadObject") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the gateway makes."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.head_calls: list[str] = []
        self.put_calls: list[str] = []
        self.head_errors: dict[str, Exception] = {}
        self.put_errors: dict[str, Exception] = {}

    def head_object(self, Bucket, Key):
        self.head_calls.append(Key)
        if Key in self.head_errors:
            raise self.head_errors[Key]
        if Key not in self.objects:
            raise client_error("404", 404)
        return {"ContentLength": len(self.objects[Key]["body"])}

    def put_object(self, Bucket, Key, Body, ContentType, ACL):
        self.put_calls.append(Key)
        if Key in self.put_errors:
            raise self.put_errors[Key]
        self.objects[Key] = {
            "body": Body.read(),
            "content_type": ContentType,
            "acl": ACL,
            "bucket": Bucket,
        }
        return {"ETag": '"etag"'}


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def store(s3_client):
    return ObjectStore(s3_client, "music", PUBLIC_URL)


@pytest.fixture
def encoder():
    return FakeEncoder()
