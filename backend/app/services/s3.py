import time
from typing import Iterator

import boto3

from app.core.config import settings


def _client():
    return boto3.client("s3", region_name=settings.AWS_REGION or None, endpoint_url=settings.S3_ENDPOINT_URL)


def _safe_name(original_filename: str) -> str:
    return original_filename.replace("/", "_").replace("\\", "_")


def user_prefix(user_id: int) -> str:
    if settings.S3_PREFIX:
        return f"{settings.S3_PREFIX}/{user_id}/"
    return f"{user_id}/"


def build_storage_path(user_id: int, original_filename: str, uploaded_at_ms: int | None = None) -> str:
    """
    <prefix>/<user_id>/<epoch_ms>-<file_name>

    Collisions are avoided by the millisecond timestamp, not by content hash.
    """
    stamp = uploaded_at_ms if uploaded_at_ms is not None else int(time.time() * 1000)
    return f"{user_prefix(user_id)}{stamp}-{_safe_name(original_filename)}"


def put_object(storage_path: str, body: bytes, content_type: str | None) -> None:
    s3 = _client()
    params = {"Bucket": settings.S3_BUCKET_NAME, "Key": storage_path, "Body": body}
    if content_type:
        params["ContentType"] = content_type
    s3.put_object(**params)


def iter_object_chunks(storage_path: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    s3 = _client()
    obj = s3.get_object(Bucket=settings.S3_BUCKET_NAME, Key=storage_path)
    body = obj["Body"]
    try:
        while True:
            chunk = body.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        body.close()


def open_object(storage_path: str) -> Iterator[bytes]:
    """
    Fetch the object eagerly so a missing key fails before any response bytes are sent,
    then hand back an iterator over the remaining chunks.
    """
    chunks = iter_object_chunks(storage_path)
    first = next(chunks, b"")

    def _gen() -> Iterator[bytes]:
        if first:
            yield first
        yield from chunks

    return _gen()


def list_keys(prefix: str) -> list[str]:
    s3 = _client()
    paginator = s3.get_paginator("list_objects_v2")
    keys: list[str] = []
    for page in paginator.paginate(Bucket=settings.S3_BUCKET_NAME, Prefix=prefix):
        for item in page.get("Contents", []) or []:
            key = item.get("Key")
            if key:
                keys.append(key)
    return keys


def delete_object(storage_path: str) -> None:
    s3 = _client()
    s3.delete_object(Bucket=settings.S3_BUCKET_NAME, Key=storage_path)
