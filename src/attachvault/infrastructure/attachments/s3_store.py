from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Iterator, Mapping, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from attachvault.domain.entities.attachment import ObjectMeta
from attachvault.domain.errors import NotFoundError, StoreTransportError
from attachvault.domain.naming import PRESIGNED_KEY_PREFIX
from attachvault.infrastructure.settings import Settings, get_settings

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_DELETE_BATCH_SIZE = 1000  # DeleteObjects limit
_ACL = "bucket-owner-full-control"


@dataclass(frozen=True)
class S3StoreConfig:
    bucket: str
    region: str = "eu-west-1"
    endpoint: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    use_ssl: bool = True
    force_path_style: bool = True
    max_attempts: int = 4
    chunk_size: int = 64 * 1024
    presign_expires_in: int = 3600


def _is_not_found(e: ClientError) -> bool:
    return str(e.response.get("Error", {}).get("Code", "")) in _NOT_FOUND_CODES


def _strip_etag(etag: Any) -> Optional[str]:
    return etag.strip('"') if isinstance(etag, str) else None


class S3BlobStore:
    """BlobStore over an S3 bucket.

    Retries are left to botocore (``max_attempts``); every call here either
    returns a definitive answer or raises StoreTransportError.
    """

    def __init__(self, cfg: S3StoreConfig, client: Any = None) -> None:
        self.cfg = cfg
        if client is None:
            s3_cfg = Config(
                s3={"addressing_style": "path"} if cfg.force_path_style else {},
                retries={"max_attempts": cfg.max_attempts, "mode": "standard"},
            )
            client = boto3.client(
                "s3",
                endpoint_url=cfg.endpoint,
                aws_access_key_id=cfg.access_key,
                aws_secret_access_key=cfg.secret_key,
                region_name=cfg.region,
                use_ssl=cfg.use_ssl,
                config=s3_cfg,
            )
        self.client = client

    def _failure(self, action: str, key: str, e: Exception) -> StoreTransportError:
        logger.error(f"S3 {action} of {key} in {self.cfg.bucket} failed: {e}")
        return StoreTransportError(message=f"S3 {action} of {key} failed: {e}")

    def head(self, key: str) -> Optional[ObjectMeta]:
        try:
            resp = self.client.head_object(Bucket=self.cfg.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise self._failure("head", key, e) from e
        except BotoCoreError as e:
            raise self._failure("head", key, e) from e

        return ObjectMeta(
            key=key,
            etag=_strip_etag(resp.get("ETag")),
            size_bytes=resp.get("ContentLength"),
            content_type=resp.get("ContentType"),
            metadata=resp.get("Metadata") or {},
        )

    def get(self, key: str) -> Iterator[bytes]:
        try:
            resp = self.client.get_object(Bucket=self.cfg.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(message=f"{key} does not exist") from e
            raise self._failure("get", key, e) from e
        except BotoCoreError as e:
            raise self._failure("get", key, e) from e
        return resp["Body"].iter_chunks(chunk_size=self.cfg.chunk_size)

    def put(self, key: str, body: BinaryIO, content_type: Optional[str] = None) -> None:
        extra = {"ACL": _ACL}
        if content_type:
            extra["ContentType"] = content_type
        try:
            # managed transfer: streams the file object, multipart when large
            self.client.upload_fileobj(Fileobj=body, Bucket=self.cfg.bucket, Key=key, ExtraArgs=extra)
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise self._failure("put", key, e) from e

    def copy(
        self,
        source_key: str,
        dest_key: str,
        metadata: Mapping[str, str],
        content_type: Optional[str] = None,
    ) -> None:
        params: dict[str, Any] = {
            "Bucket": self.cfg.bucket,
            "Key": dest_key,
            "CopySource": {"Bucket": self.cfg.bucket, "Key": source_key},
            "ACL": _ACL,
            "MetadataDirective": "REPLACE",
            "TaggingDirective": "COPY",
            "Metadata": dict(metadata),
        }
        if content_type:
            params["ContentType"] = content_type
        try:
            self.client.copy_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._failure("copy", f"{source_key} -> {dest_key}", e) from e

    def delete_many(self, keys: list[str]) -> None:
        keys = [key for key in keys if key]
        for start in range(0, len(keys), _DELETE_BATCH_SIZE):
            chunk = keys[start : start + _DELETE_BATCH_SIZE]
            try:
                resp = self.client.delete_objects(
                    Bucket=self.cfg.bucket,
                    Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                raise self._failure("delete", ", ".join(chunk), e) from e

            errors = resp.get("Errors") or []
            if errors:
                failed = ", ".join(err.get("Key", "?") for err in errors)
                logger.error(f"S3 delete partially failed in {self.cfg.bucket}: {failed}")
                raise StoreTransportError(message=f"S3 delete failed for {failed}")

    def presigned_post(self, key: str) -> dict[str, Any]:
        """Presigned POST form for a direct upload of ``key`` (must start with the tmp prefix)."""
        try:
            return self.client.generate_presigned_post(
                Bucket=self.cfg.bucket,
                Key=key,
                Conditions=[["starts-with", "$key", PRESIGNED_KEY_PREFIX]],
                ExpiresIn=self.cfg.presign_expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._failure("presign", key, e) from e

    def iter_objects(self, suffix: Optional[str] = None) -> Iterator[tuple[str, datetime]]:
        """Yield ``(key, last_modified)`` for every object, optionally filtered by suffix."""
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.cfg.bucket):
                for obj in page.get("Contents", []):
                    if suffix is None or obj["Key"].endswith(suffix):
                        yield obj["Key"], obj["LastModified"]
        except (ClientError, BotoCoreError) as e:
            raise self._failure("list", self.cfg.bucket, e) from e

    def health_check(self) -> dict[str, Any]:
        """Check that the bucket is reachable."""
        try:
            self.client.head_bucket(Bucket=self.cfg.bucket)
            return {
                "status": "healthy",
                "bucket": self.cfg.bucket,
                "endpoint": self.cfg.endpoint,
            }
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 health check failed: {e}")
            return {
                "status": "unhealthy",
                "bucket": self.cfg.bucket,
                "endpoint": self.cfg.endpoint,
                "error": str(e),
            }


def s3_store_from_settings(settings: Settings | None = None) -> S3BlobStore:
    settings = settings or get_settings()
    if not settings.s3_bucket:
        raise ValueError("S3_BUCKET must be configured")
    cfg = S3StoreConfig(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        endpoint=settings.s3_endpoint,
        access_key=settings.s3_access_key.get_secret_value() if settings.s3_access_key else None,
        secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
        use_ssl=settings.s3_use_ssl,
        force_path_style=settings.s3_force_path_style,
        max_attempts=settings.s3_max_attempts,
        chunk_size=settings.download_chunk_size,
        presign_expires_in=settings.presigned_expires_seconds,
    )
    return S3BlobStore(cfg)


# Singleton instance
_blob_store: S3BlobStore | None = None


def get_blob_store() -> S3BlobStore:
    """Get singleton S3 store built from settings."""
    global _blob_store
    if _blob_store is None:
        _blob_store = s3_store_from_settings()
    return _blob_store
