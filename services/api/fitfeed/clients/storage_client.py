"""
MinIO (S3-compatible) client for post media.

Stores image/video bytes as objects under posts/{user_id}-{millis}-{i}.{ext}.
Public URLs are built by string concatenation from the configured prefix,
so reads never go through this service.
"""
import base64
import logging
import time
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config

from fitfeed.config import settings

logger = logging.getLogger(__name__)

_s3 = None

_CONTENT_TYPES = {"image": "image/jpeg", "video": "video/mp4"}
_DEFAULT_EXT = {"image": "jpg", "video": "mp4"}


def init_storage() -> None:
    """Create the S3 client and ensure the media bucket exists."""
    global _s3
    scheme = "https" if settings.minio_use_ssl else "http"
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def get_s3():
    if _s3 is None:
        raise RuntimeError("Storage client not initialised — call init_storage() at startup")
    return _s3


def build_media_key(user_id: str, index: int, media_type: str, ext: Optional[str] = None) -> str:
    ext = (ext or _DEFAULT_EXT.get(media_type, "bin")).lower().lstrip(".")
    millis = int(time.time() * 1000)
    return f"posts/{user_id}-{millis}-{index}.{ext}"


def upload_media(
    user_id: str,
    index: int,
    media_base64: str,
    media_type: str,
    ext: Optional[str] = None,
) -> str:
    """Decode base64 media, upload it, return the object key."""
    key = build_media_key(user_id, index, media_type, ext)
    data = base64.b64decode(media_base64)

    get_s3().put_object(
        Bucket=settings.minio_bucket,
        Key=key,
        Body=BytesIO(data),
        ContentType=_CONTENT_TYPES.get(media_type, "application/octet-stream"),
    )
    logger.debug("Uploaded media to MinIO: %s", key)
    return key


def delete_media(storage_path: str) -> bool:
    """Remove an object; failures are logged and reported as False."""
    if not storage_path or storage_path.startswith("http"):
        return False
    try:
        get_s3().delete_object(Bucket=settings.minio_bucket, Key=storage_path)
        return True
    except Exception as exc:
        logger.warning("Failed to delete media %s: %s", storage_path, exc)
        return False


def public_url(storage_path: str) -> str:
    if storage_path.startswith("http"):
        return storage_path
    base = settings.storage_public_base_url.rstrip("/")
    return f"{base}/{settings.minio_bucket}/{storage_path}"
