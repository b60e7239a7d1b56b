"""Durable store for published schema snapshots (write/delete only)."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings

logger = logging.getLogger(__name__)


def snapshot_key(model_name: str) -> str:
    if not model_name or "/" in model_name or "\\" in model_name or model_name.startswith("."):
        raise ValueError(f"Invalid artifact name: {model_name!r}")
    return f"{model_name}.json"


class ArtifactStore(Protocol):
    def put_json(self, key: str, payload: Dict[str, Any]) -> str: ...

    def delete(self, key: str) -> bool: ...


class LocalArtifactStore:
    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.artifact_dir)

    def put_json(self, key: str, payload: Dict[str, Any]) -> str:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.base_dir / key
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, default=str)
        os.replace(tmp_path, path)
        return str(path)

    def delete(self, key: str) -> bool:
        path = self.base_dir / key
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False


class S3ArtifactStore:
    def __init__(self):
        if not all([settings.aws_access_key_id, settings.aws_secret_access_key, settings.s3_bucket_name]):
            raise ValueError("AWS S3 credentials and bucket name must be configured")

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name
        self.prefix = settings.s3_prefix.strip("/")

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def put_json(self, key: str, payload: Dict[str, Any]) -> str:
        object_key = self._object_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=json.dumps(payload, indent=2, default=str).encode("utf-8"),
                ContentType="application/json"
            )
            return f"s3://{self.bucket_name}/{object_key}"
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload schema snapshot to S3: {str(e)}")
            raise

    def delete(self, key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._object_key(key))
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete schema snapshot from S3: {str(e)}")
            return False


def get_artifact_store() -> ArtifactStore:
    if settings.artifact_backend == "s3":
        return S3ArtifactStore()
    return LocalArtifactStore()
