# parking_desk/services/storage_service.py
"""
Object storage for vehicle images and discharge photos (S3).

Size and MIME checks run before any upload is attempted; a rejected file
never leaves the console. Keys are organised as <folder>/YYYY/MM/DD/<uuid>.<ext>.
"""

import asyncio
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from parking_desk.config import settings
from parking_desk.exceptions import ServiceError, ValidationError
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)

VEHICLES_FOLDER = "vehicles"
DISCHARGE_FOLDER = "discharge"

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass
class ImageFile:
    content: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


def validate_image(image: ImageFile):
    """Raise ValidationError if the file is too large or not an allowed image type."""
    if not image.content:
        raise ValidationError("Image file is empty")
    if image.size > settings.MAX_IMAGE_SIZE_BYTES:
        limit_mb = settings.MAX_IMAGE_SIZE_BYTES // (1024 * 1024)
        raise ValidationError(f"Image size must be less than {limit_mb}MB", "IMAGE_TOO_LARGE")
    if image.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"Unsupported image type '{image.content_type}'. "
            f"Allowed: {', '.join(settings.ALLOWED_IMAGE_TYPES)}",
            "IMAGE_TYPE_NOT_ALLOWED",
        )


class StorageService:
    """Uploads images to S3 and returns their public URL."""

    def __init__(self, client=None, bucket: Optional[str] = None, region: Optional[str] = None):
        self.bucket = bucket or settings.S3_BUCKET
        self.region = region or settings.S3_REGION
        self._client = client

    @property
    def client(self):
        # Created lazily so the console starts without storage credentials
        if self._client is None:
            self._client = boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=self.region,
            )
        return self._client

    def generate_key(self, filename: str, content_type: str, folder: str) -> str:
        ext = os.path.splitext(filename)[1].lower() or _EXTENSIONS.get(content_type, ".jpg")
        now = datetime.utcnow()
        return f"{folder}/{now.year:04d}/{now.month:02d}/{now.day:02d}/{uuid.uuid4()}{ext}"

    def public_url(self, key: str) -> str:
        if settings.S3_PUBLIC_BASE_URL:
            return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _put(self, image: ImageFile, key: str):
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=BytesIO(image.content),
            ContentType=image.content_type,
            Metadata={
                "original_filename": image.filename,
                "upload_timestamp": datetime.utcnow().isoformat(),
            },
        )

    async def upload_image(self, image: ImageFile, folder: str = VEHICLES_FOLDER) -> str:
        """Validate and upload one image. Returns its URL."""
        validate_image(image)
        key = self.generate_key(image.filename, image.content_type, folder)
        try:
            # boto3 is blocking; keep the event loop free for other operators
            await asyncio.to_thread(self._put, image, key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "unknown")
            logger.error(f"[STORAGE] Upload of {image.filename} failed with {error_code}: {e}")
            raise ServiceError(f"File upload failed: {error_code}", "UPLOAD_ERROR")
        except BotoCoreError as e:
            logger.error(f"[STORAGE] Upload of {image.filename} failed: {e}")
            raise ServiceError("File upload failed. Please try again.", "UPLOAD_ERROR")

        url = self.public_url(key)
        logger.info(f"[STORAGE] Uploaded {image.filename} ({image.size} bytes) → {key}")
        return url
