# parking_desk/services/camera_service.py
"""
Live photo capture from the desk camera.

The camera is a scoped resource: it is opened only for the duration of one
capture and closed on every exit path (capture, cancel, error). The default
device is a Hikvision IP camera at the desk, read through its ISAPI
snapshot endpoint over a Digest-authenticated session:

    GET http://{CAMERA_IP}/ISAPI/Streaming/channels/1/picture
"""

import time
from contextlib import asynccontextmanager
from typing import Optional, Protocol

import httpx

from parking_desk.config import settings
from parking_desk.exceptions import CameraUnavailableError, CaptureInProgressError
from parking_desk.services.storage_service import ImageFile, StorageService
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)


class CameraDevice(Protocol):
    async def open(self) -> None: ...
    async def capture(self) -> ImageFile: ...
    async def close(self) -> None: ...


class IpCameraDevice:
    """ISAPI snapshot camera. The HTTP session is the 'stream' held while open."""

    def __init__(self, ip: Optional[str] = None, user: Optional[str] = None, password: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.ip = ip or settings.CAMERA_IP
        self.user = user or settings.CAMERA_USER
        self.password = password or settings.CAMERA_PASSWORD
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def open(self):
        self._client = httpx.AsyncClient(
            auth=httpx.DigestAuth(self.user, self.password),
            timeout=settings.CAMERA_TIMEOUT,
            transport=self._transport,
        )

    async def capture(self) -> ImageFile:
        if self._client is None:
            raise CameraUnavailableError("Camera is not open")
        url = f"http://{self.ip}{settings.CAMERA_SNAPSHOT_PATH}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"[CAMERA] Snapshot from {self.ip} failed: {e}")
            raise CameraUnavailableError(f"Failed to access camera: {e}")

        if response.status_code == 401:
            raise CameraUnavailableError("Camera permission denied. Check the camera credentials.")
        if response.status_code != 200 or not response.content:
            logger.warning(f"[CAMERA] {self.ip} returned HTTP {response.status_code}")
            raise CameraUnavailableError("Failed to capture image")

        return ImageFile(
            content=response.content,
            filename=f"camera-capture-{int(time.time() * 1000)}.jpg",
            content_type="image/jpeg",
        )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


@asynccontextmanager
async def acquire_camera(device: CameraDevice):
    """Open ``device`` for one capture and always release it."""
    try:
        await device.open()
    except Exception as e:
        await device.close()
        if isinstance(e, CameraUnavailableError):
            raise
        logger.error(f"[CAMERA] Could not open camera: {e}")
        raise CameraUnavailableError(f"Failed to access camera: {e}")
    logger.debug("[CAMERA] Acquired")
    try:
        yield device
    finally:
        await device.close()
        logger.debug("[CAMERA] Released")


class CaptureSession:
    """
    Capture-then-upload for one workflow. Only one capture or upload may be
    in flight; a second click while busy raises CaptureInProgressError.
    """

    def __init__(self, storage: StorageService, device_factory=IpCameraDevice):
        self.storage = storage
        self.device_factory = device_factory
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def begin(self):
        """Claim the session for a file upload that bypasses the camera."""
        if self._busy:
            raise CaptureInProgressError()
        self._busy = True

    def end(self):
        self._busy = False

    async def upload(self, image: ImageFile, folder: str) -> str:
        self.begin()
        try:
            return await self.storage.upload_image(image, folder)
        finally:
            self.end()

    async def capture_and_upload(self, folder: str) -> str:
        self.begin()
        try:
            async with acquire_camera(self.device_factory()) as camera:
                image = await camera.capture()
            # Camera is released before the (slow) upload starts
            return await self.storage.upload_image(image, folder)
        finally:
            self.end()
