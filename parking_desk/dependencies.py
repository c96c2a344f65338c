# parking_desk/dependencies.py
"""
Process-wide collaborators shared by every request: the remote API client,
object storage and the operator session registry. Created on startup and
injected into routers with FastAPI dependencies.
"""

from typing import Optional

from parking_desk.services.camera_service import IpCameraDevice
from parking_desk.services.parking_api import ParkingApiClient
from parking_desk.services.session_store import SessionStore
from parking_desk.services.storage_service import StorageService

_api: Optional[ParkingApiClient] = None
_storage: Optional[StorageService] = None
_sessions = SessionStore()

camera_factory = IpCameraDevice


def get_api() -> ParkingApiClient:
    """FastAPI dependency: the shared remote API client."""
    global _api
    if _api is None:
        _api = ParkingApiClient()
    return _api


def get_storage() -> StorageService:
    global _storage
    if _storage is None:
        _storage = StorageService()
    return _storage


def get_sessions() -> SessionStore:
    return _sessions


def get_camera_factory():
    return camera_factory


async def close_clients():
    global _api
    if _api is not None:
        await _api.aclose()
        _api = None
