# parking_desk/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Remote parking API ────────────────────────────────────────────────
    PARKING_API_BASE_URL: str = "http://localhost:9000/api"
    PARKING_API_TIMEOUT: float = 60.0           # Remote API can be slow
    PARKING_API_TOKEN: Optional[str] = None     # Session token issued by the auth backend

    # ── Console network ───────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to require X-API-Key on console endpoints

    # ── Object storage (S3) ───────────────────────────────────────────────
    S3_BUCKET: str = "parking-desk-images"
    S3_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_PUBLIC_BASE_URL: Optional[str] = None    # CDN in front of the bucket, if any

    # ── Uploads ───────────────────────────────────────────────────────────
    MAX_IMAGE_SIZE_BYTES: int = 5 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: list[str] = ["image/jpeg", "image/png", "image/gif", "image/webp"]

    # ── Validation ────────────────────────────────────────────────────────
    OTP_LENGTH: int = 6
    MOBILE_NUMBER_LENGTH: int = 10
    VEHICLE_NUMBER_MAX_LENGTH: int = 20
    NAME_MAX_LENGTH: int = 100
    ADDRESS_MAX_LENGTH: int = 200
    OTP_AUTOFILL: bool = False      # Demo backends echo the code in sendOTP; never enable in production

    # ── Capture camera ────────────────────────────────────────────────────
    CAMERA_IP: str = "192.168.1.120"
    CAMERA_USER: str = "admin"
    CAMERA_PASSWORD: str = "CHANGE_ME"
    CAMERA_SNAPSHOT_PATH: str = "/ISAPI/Streaming/channels/1/picture"
    CAMERA_TIMEOUT: float = 10.0

    # ── Display ───────────────────────────────────────────────────────────
    DEFAULT_TIMEZONE: str = "UTC"

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True        # Rotating logs/console.log next to the package

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
