from __future__ import annotations
import io
import os
import uuid
from functools import lru_cache
from minio import Minio
from minio.error import S3Error
from feedbackdesk.config import settings

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
}

def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure

@lru_cache(maxsize=1)
def _client() -> Minio:
    host, secure = _parse_endpoint(settings.s3_endpoint)
    client = Minio(host, access_key=settings.s3_access_key, secret_key=settings.s3_secret_key, secure=secure)
    try:
        if not client.bucket_exists(settings.s3_bucket_uploads):
            client.make_bucket(settings.s3_bucket_uploads)
    except S3Error as e:
        # another worker may have created it first
        if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
            raise
    return client

def upload_extension(original_name: str | None) -> str | None:
    """Lower-cased extension if the upload type is accepted, else None."""
    ext = os.path.splitext(original_name or "")[1].lower()
    return ext if ext in settings.allowed_upload_extensions else None

def new_upload_key(ext: str) -> str:
    return f"submissions/{uuid.uuid4().hex}{ext}"

def put_bytes(key: str, data: bytes, content_type: str) -> None:
    _client().put_object(
        settings.s3_bucket_uploads, key, io.BytesIO(data), length=len(data), content_type=content_type
    )

def get_bytes(key: str) -> tuple[bytes, str]:
    """
    Retrieve object from storage.
    Returns (data, content_type).
    """
    try:
        response = _client().get_object(settings.s3_bucket_uploads, key)
        try:
            data = response.read()
            content_type = response.headers.get('Content-Type', 'application/octet-stream')
        finally:
            response.close()
            response.release_conn()
        return data, content_type
    except S3Error as e:
        if e.code == 'NoSuchKey':
            raise FileNotFoundError(f"Object not found: {key}")
        raise

def delete(key: str) -> None:
    _client().remove_object(settings.s3_bucket_uploads, key)
