import time
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app


class StorageError(RuntimeError):
    """Upload to object storage failed."""


def _get_client():
    return boto3.client(
        "s3",
        endpoint_url=current_app.config["S3_ENDPOINT_URL"] or None,
        aws_access_key_id=current_app.config["S3_ACCESS_KEY"],
        aws_secret_access_key=current_app.config["S3_SECRET_KEY"],
        region_name=current_app.config["S3_REGION"],
        config=BotoConfig(signature_version="s3v4"),
    )


def upload(storage_key, data, content_type="image/jpeg"):
    """Upload bytes to S3 as a public object.

    put_object overwrites an existing key, so retrying the same key after
    a partial failure is safe.
    """
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    try:
        client.put_object(
            Bucket=bucket,
            Key=storage_key,
            Body=data,
            ContentType=content_type,
            ACL="public-read",
        )
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"Upload failed: {e}") from e


def get_public_url(storage_key):
    """Return the public CDN URL for a storage key."""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    return f"{base}/{storage_key}"


def store(storage_key, data, content_type):
    """Upload and return the public URL."""
    upload(storage_key, data, content_type=content_type)
    return get_public_url(storage_key)


def extension_for(content_type):
    """File extension from a content type: image/png; q=1 -> png."""
    if not content_type or "/" not in content_type:
        return "jpg"
    subtype = content_type.split("/", 1)[1].split(";")[0].strip().lower()
    return subtype or "jpg"


def _now_ms():
    return int(time.time() * 1000)


def _stamped(prefix, content_type, digest):
    """`{prefix}/{ms}-{digest[:16]}.{ext}`; the digest keeps same-millisecond uploads apart."""
    return f"{prefix}/{_now_ms()}-{digest[:16]}.{extension_for(content_type)}"


def product_key(product_id, content_type, digest):
    return _stamped(f"products/{product_id}", content_type, digest)


def queue_key(item_id, content_type, digest):
    return _stamped(f"queue/{item_id}", content_type, digest)


def slug_key(slug, content_type, digest):
    return _stamped(f"products/{slug}", content_type, digest)
