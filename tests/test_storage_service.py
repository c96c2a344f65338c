# tests/test_storage_service.py
"""Unit tests for image validation and S3 uploads."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock, patch
from botocore.exceptions import ClientError
from parking_desk.exceptions import ServiceError, ValidationError
from parking_desk.services.storage_service import (
    DISCHARGE_FOLDER, ImageFile, StorageService, validate_image,
)


def make_image(size=1024, content_type="image/jpeg", filename="car.jpg"):
    return ImageFile(content=b"\xff" * size, filename=filename, content_type=content_type)


class TestValidateImage:
    def test_accepts_small_jpeg(self):
        validate_image(make_image())

    def test_rejects_oversized(self):
        with pytest.raises(ValidationError) as exc:
            validate_image(make_image(size=5 * 1024 * 1024 + 1))
        assert exc.value.code == "IMAGE_TOO_LARGE"

    def test_rejects_non_image(self):
        with pytest.raises(ValidationError) as exc:
            validate_image(make_image(content_type="application/pdf", filename="doc.pdf"))
        assert exc.value.code == "IMAGE_TYPE_NOT_ALLOWED"

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            validate_image(make_image(size=0))


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_puts_object_and_returns_url(self):
        s3 = MagicMock()
        storage = StorageService(client=s3, bucket="desk-bucket", region="eu-west-1")

        with patch("parking_desk.services.storage_service.settings.S3_PUBLIC_BASE_URL", None):
            url = await storage.upload_image(make_image(content_type="image/png", filename="p.png"),
                                             DISCHARGE_FOLDER)

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "desk-bucket"
        assert kwargs["Key"].startswith("discharge/")
        assert kwargs["Key"].endswith(".png")
        assert kwargs["ContentType"] == "image/png"
        assert url == f"https://desk-bucket.s3.eu-west-1.amazonaws.com/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_invalid_image_never_uploaded(self):
        s3 = MagicMock()
        storage = StorageService(client=s3)
        with pytest.raises(ValidationError):
            await storage.upload_image(make_image(content_type="text/plain"))
        s3.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_error_is_service_error(self):
        s3 = MagicMock()
        s3.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")
        storage = StorageService(client=s3)

        with pytest.raises(ServiceError) as exc:
            await storage.upload_image(make_image())

        assert exc.value.code == "UPLOAD_ERROR"
        assert "AccessDenied" in exc.value.message

    def test_public_base_url_overrides_bucket_url(self):
        storage = StorageService(client=MagicMock(), bucket="b")
        with patch("parking_desk.services.storage_service.settings.S3_PUBLIC_BASE_URL", "https://cdn.test/"):
            assert storage.public_url("vehicles/x.jpg") == "https://cdn.test/vehicles/x.jpg"

    def test_key_layout(self):
        storage = StorageService(client=MagicMock())
        key = storage.generate_key("capture", "image/webp", "vehicles")
        parts = key.split("/")
        assert parts[0] == "vehicles"
        assert len(parts) == 5
        assert parts[-1].endswith(".webp")
