"""
storage.py — S3 / Cloudflare R2 Storage Utilities
===================================================

Handles cloud storage for user avatars and generated narration audio.
Supports AWS S3, Cloudflare R2 and other S3-compatible stores.

Configure via environment variables:
  S3_BUCKET         — bucket name
  S3_REGION         — e.g. us-east-1
  S3_ENDPOINT       — custom endpoint for R2 / MinIO
  S3_PUBLIC_URL     — public base URL for objects (optional)
  AWS_ACCESS_KEY_ID — access key
  AWS_SECRET_ACCESS_KEY — secret key
"""

import logging
import os

import boto3

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import S3_BUCKET, S3_REGION, S3_ENDPOINT, S3_PUBLIC_URL

logger = logging.getLogger(__name__)


def _get_s3_client():
    """Create a boto3 S3 client with optional custom endpoint."""
    kwargs = {"region_name": S3_REGION}
    if S3_ENDPOINT:
        kwargs["endpoint_url"] = S3_ENDPOINT

    return boto3.client("s3", **kwargs)


def public_url(key: str) -> str:
    """Public URL for an object key."""
    if S3_PUBLIC_URL:
        return f"{S3_PUBLIC_URL.rstrip('/')}/{key}"
    if S3_ENDPOINT:
        return f"{S3_ENDPOINT.rstrip('/')}/{S3_BUCKET}/{key}"
    return f"https://{S3_BUCKET}.s3.{S3_REGION}.amazonaws.com/{key}"


def upload_bytes(data: bytes, key: str, content_type: str) -> str:
    """
    Upload an in-memory payload to the bucket.

    Args:
        data:         Raw bytes.
        key:          Destination object key.
        content_type: MIME type stored with the object.

    Returns:
        Public URL of the uploaded object.
    """
    client = _get_s3_client()

    logger.info(f"Uploading {len(data)} bytes → s3://{S3_BUCKET}/{key}")

    client.put_object(
        Bucket=S3_BUCKET,
        Key=key,
        Body=data,
        ContentType=content_type,
    )

    return public_url(key)

