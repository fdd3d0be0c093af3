"""Object storage for original upload bytes (local filesystem or S3)."""
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ingestion.config import Settings
from ingestion.exceptions import StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)


def _safe_segment(value: str, default: str) -> str:
    segment = re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip(".")
    return segment or default


def make_storage_key(owner: str, filename: str) -> str:
    """Key layout: ``{owner}/{timestamp}-{filename}``, both parts reduced to safe characters."""
    safe_owner = _safe_segment(owner, "unknown")
    safe_name = _safe_segment(Path(filename).name, "upload")
    timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
    return f"{safe_owner}/{timestamp}-{safe_name}"


class ObjectStore(ABC):
    """Blob store interface used by the pipeline."""

    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> None:
        """Store bytes under key. Raises StorageWriteError."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Read bytes stored under key. Raises StorageReadError."""


class LocalObjectStore(ObjectStore):
    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _path(self, key: str) -> Optional[Path]:
        """Path for key, or None if it would leave the base directory."""
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            return None
        return path

    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path(key)
        if path is None:
            raise StorageWriteError(f"Invalid storage key: {key}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {key}: {e}") from e

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if path is None:
            raise StorageReadError(f"Invalid storage key: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageReadError(f"Failed to read {key}: {e}") from e


class S3ObjectStore(ObjectStore):
    def __init__(self, bucket_name: str, client=None):
        self.bucket_name = bucket_name
        self.client = client

    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> None:
        try:
            self.client.put_object(Bucket=self.bucket_name, Key=key, Body=content, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageWriteError(f"Failed to upload {key} to s3://{self.bucket_name}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageReadError(f"Failed to download {key} from s3://{self.bucket_name}: {e}") from e


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "s3":
        if not settings.s3_bucket_name:
            raise ValueError("S3_BUCKET_NAME must be set when STORAGE_BACKEND=s3")
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        return S3ObjectStore(settings.s3_bucket_name, client)
    return LocalObjectStore(settings.local_storage_dir)
