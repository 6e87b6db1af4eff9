"""Tests for GCS publishing with the storage client mocked."""

import re
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcs_exceptions

from services.errors import StorageError
from services.gcs import (
    DEFAULT_BUCKET,
    StoragePublisher,
    generate_signed_url,
    get_bucket_name,
    object_name_for,
)


def _mock_client(blob: MagicMock) -> MagicMock:
    bucket = MagicMock()
    bucket.blob.return_value = blob
    client = MagicMock()
    client.bucket.return_value = bucket
    return client


def test_get_bucket_name_default() -> None:
    with patch.dict("os.environ", {"GCS_BUCKET": ""}, clear=False):
        assert get_bucket_name() == DEFAULT_BUCKET


def test_get_bucket_name_strips_whitespace() -> None:
    with patch.dict("os.environ", {"GCS_BUCKET": "  my-bucket  "}, clear=False):
        assert get_bucket_name() == "my-bucket"


def test_object_name_uses_session_and_epoch_millis() -> None:
    assert object_name_for("abc", now=1718000000.123) == "abc_1718000000123.mp4"


def test_generate_signed_url_builds_v4_parameters() -> None:
    blob = MagicMock()
    blob.generate_signed_url.return_value = "https://storage.example.com/signed"

    url = generate_signed_url(blob, expiration_seconds=3600)

    assert url == "https://storage.example.com/signed"
    kwargs = blob.generate_signed_url.call_args.kwargs
    assert kwargs["version"] == "v4"
    assert kwargs["method"] == "GET"
    assert kwargs["expiration"].tzinfo is not None


@pytest.mark.anyio
async def test_publish_uploads_without_overwrite_and_returns_public_url(tmp_path: Path) -> None:
    video = tmp_path / "s1-video.mp4"
    video.write_bytes(b"video-bytes")
    blob = MagicMock()
    blob.public_url = "https://storage.googleapis.com/media/s1_1.mp4"
    client = _mock_client(blob)
    publisher = StoragePublisher(bucket_name="media", client=client)

    url = await publisher.publish(video, "s1")

    assert url == "https://storage.googleapis.com/media/s1_1.mp4"
    client.bucket.assert_called_once_with("media")
    blob_name = client.bucket.return_value.blob.call_args.args[0]
    assert re.fullmatch(r"s1_\d+\.mp4", blob_name)
    blob.upload_from_string.assert_called_once_with(
        b"video-bytes", content_type="video/mp4", if_generation_match=0
    )


@pytest.mark.anyio
async def test_publish_signed_url_when_configured(tmp_path: Path) -> None:
    video = tmp_path / "v.mp4"
    video.write_bytes(b"v")
    blob = MagicMock()
    blob.generate_signed_url.return_value = "https://signed"
    publisher = StoragePublisher(bucket_name="media", client=_mock_client(blob), signed_url_seconds=600)

    assert await publisher.publish(video, "s1") == "https://signed"


@pytest.mark.anyio
async def test_publish_collision_raises_storage_error(tmp_path: Path) -> None:
    video = tmp_path / "v.mp4"
    video.write_bytes(b"v")
    blob = MagicMock()
    blob.upload_from_string.side_effect = gcs_exceptions.PreconditionFailed("exists")
    publisher = StoragePublisher(bucket_name="media", client=_mock_client(blob))

    with pytest.raises(StorageError, match="already exists"):
        await publisher.publish(video, "s1")


@pytest.mark.anyio
async def test_publish_api_error_raises_storage_error(tmp_path: Path) -> None:
    video = tmp_path / "v.mp4"
    video.write_bytes(b"v")
    blob = MagicMock()
    blob.upload_from_string.side_effect = gcs_exceptions.Forbidden("denied")
    publisher = StoragePublisher(bucket_name="media", client=_mock_client(blob))

    with pytest.raises(StorageError, match="Storage upload failed"):
        await publisher.publish(video, "s1")


@pytest.mark.anyio
async def test_publish_missing_file_raises_storage_error(tmp_path: Path) -> None:
    client = MagicMock()
    publisher = StoragePublisher(bucket_name="media", client=client)
    with pytest.raises(StorageError, match="cannot read"):
        await publisher.publish(tmp_path / "missing.mp4", "s1")
    client.bucket.assert_not_called()
