"""GCS publishing for downloaded session videos."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from services.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "content"
VIDEO_CONTENT_TYPE = "video/mp4"


def get_bucket_name() -> str:
    """Bucket name from env or default."""
    return os.environ.get("GCS_BUCKET", "").strip() or DEFAULT_BUCKET


def object_name_for(session_id: str, *, now: float | None = None) -> str:
    """Remote name unique per session and upload time, e.g. "<session_id>_1718000000000.mp4"."""
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{session_id}_{millis}.mp4"


def generate_signed_url(
    blob: storage.Blob,
    *,
    expiration_seconds: int,
    method: str = "GET",
) -> str:
    """
    Generate a V4 signed URL for an uploaded object.

    Used instead of the public URL when the bucket is private.

    :param blob: Uploaded blob
    :param expiration_seconds: URL validity in seconds
    :param method: HTTP method for the signed URL ("GET" for download)
    :return: Signed URL string
    """
    expiration = datetime.now(timezone.utc) + timedelta(seconds=expiration_seconds)
    return blob.generate_signed_url(
        expiration=expiration,
        method=method,
        version="v4",
    )


class StoragePublisher:
    """
    Upload local videos to a GCS bucket and hand back a shareable URL.

    Uploads never overwrite: the object is written with if_generation_match=0,
    so an existing object of the same name makes the upload fail.
    """

    def __init__(
        self,
        *,
        bucket_name: str | None = None,
        project: str | None = None,
        client: storage.Client | None = None,
        signed_url_seconds: int = 0,
    ) -> None:
        self._bucket_name = bucket_name or get_bucket_name()
        self._project = project
        self._client = client
        self._signed_url_seconds = signed_url_seconds

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def client(self) -> storage.Client:
        # Uses default credentials (GOOGLE_APPLICATION_CREDENTIALS or ADC).
        if self._client is None:
            self._client = storage.Client(project=self._project)
        return self._client

    def _upload(self, data: bytes, blob_name: str) -> str:
        bucket = self.client.bucket(self._bucket_name)
        blob = bucket.blob(blob_name)
        blob.upload_from_string(data, content_type=VIDEO_CONTENT_TYPE, if_generation_match=0)
        if self._signed_url_seconds > 0:
            return generate_signed_url(blob, expiration_seconds=self._signed_url_seconds)
        return blob.public_url

    async def publish(self, local_path: Path, session_id: str) -> str:
        local_path = Path(local_path)
        try:
            data = await asyncio.to_thread(local_path.read_bytes)
        except OSError as exc:
            raise StorageError(f"Storage upload failed: cannot read {local_path}: {exc}", cause=exc) from exc

        blob_name = object_name_for(session_id)
        logger.info(
            "[gcs] Uploading %s to gs://%s/%s (%.2f MB)",
            local_path.name,
            self._bucket_name,
            blob_name,
            len(data) / 1024 / 1024,
        )

        try:
            url = await asyncio.to_thread(self._upload, data, blob_name)
        except gcs_exceptions.PreconditionFailed as exc:
            raise StorageError(f"Storage upload failed: object {blob_name} already exists", cause=exc) from exc
        except gcs_exceptions.GoogleAPIError as exc:
            logger.error("[gcs] Upload of %s failed: %s", blob_name, exc)
            raise StorageError(f"Storage upload failed: {exc}", cause=exc) from exc

        logger.info("[gcs] Uploaded gs://%s/%s -> %s", self._bucket_name, blob_name, url)
        return url
