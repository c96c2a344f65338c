# parking_desk/routers/health.py
"""
System health check endpoint.
Returns status of the console + remote parking API + capture camera reachability.
"""

import requests
from requests.auth import HTTPDigestAuth
from fastapi import APIRouter, Depends
from parking_desk.config import settings
from parking_desk.dependencies import get_sessions
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(sessions=Depends(get_sessions)):
    """
    Returns:
    - Console status and open operator sessions
    - Remote parking API reachability
    - Capture camera reachability (ISAPI deviceInfo)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "sessions": len(sessions),
        "parking_api": "unknown",
        "camera": "unknown",
    }

    # Remote API answers any GET with a JSON envelope
    try:
        resp = requests.get(settings.PARKING_API_BASE_URL, params={"action": "getDashboardStats"}, timeout=5)
        result["parking_api"] = "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
        if resp.status_code >= 500:
            result["status"] = "degraded"
    except requests.exceptions.RequestException:
        result["parking_api"] = "unreachable"
        result["status"] = "degraded"

    try:
        resp = requests.get(
            f"http://{settings.CAMERA_IP}/ISAPI/System/deviceInfo",
            auth=HTTPDigestAuth(settings.CAMERA_USER, settings.CAMERA_PASSWORD),
            timeout=3,
        )
        result["camera"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
    except requests.exceptions.RequestException:
        # Camera capture is optional; uploads still work without it
        result["camera"] = "unreachable"

    return result
