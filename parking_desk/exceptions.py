# parking_desk/exceptions.py
"""
Domain errors raised by the discharge and registration workflows.

Every error is locally recoverable: the workflow that raised it keeps its
selection and verification state so the operator can retry the failed step.
main.py renders them as JSON with the status code carried on the instance.
"""

from typing import Optional


class ParkingDeskError(Exception):
    """Base class for all console errors."""

    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(ParkingDeskError):
    """Client-detected precondition failure. Never reaches the network."""

    def __init__(self, message: str = "Please check your input and try again.", code: str = "VALIDATION_ERROR"):
        super().__init__(message, 422, code)


class SubmitInProgressError(ValidationError):
    """A bulk submission for this workflow is already in flight."""

    def __init__(self, message: str = "A submission is already in progress"):
        super().__init__(message, "SUBMIT_IN_PROGRESS")
        self.status_code = 429


class CaptureInProgressError(ValidationError):
    """A camera capture or its upload is still running."""

    def __init__(self, message: str = "A capture is already in progress"):
        super().__init__(message, "CAPTURE_IN_PROGRESS")
        self.status_code = 429


class NotVerifiedError(ParkingDeskError):
    """Submission attempted before the active verification strategy allows it."""

    def __init__(self, message: str = "Verification required before submitting"):
        super().__init__(message, 409, "NOT_VERIFIED")


class InvalidCodeError(ParkingDeskError):
    """The OTP service rejected the entered code."""

    def __init__(self, message: str = "Invalid or expired OTP. Please try again."):
        super().__init__(message, 400, "INVALID_OTP")


class ServiceError(ParkingDeskError):
    """Network or upstream API failure. The message is shown verbatim."""

    def __init__(self, message: str = "Something went wrong. Please try again.", code: Optional[str] = None):
        super().__init__(message, 502, code or "SERVICE_ERROR")


class CameraUnavailableError(ServiceError):
    """The capture camera could not be opened or did not return a frame."""

    def __init__(self, message: str = "Camera is not available"):
        super().__init__(message, "CAMERA_UNAVAILABLE")
        self.status_code = 503


class ConflictError(ParkingDeskError):
    """
    Structured business conflict, e.g. a token number already used by an
    active record. Nothing was applied; the operator may resubmit with
    ``override_field`` set or correct the conflicting value.
    """

    def __init__(self, message: str, conflicts: Optional[list] = None,
                 override_field: str = "allow_duplicate", code: str = "CONFLICT"):
        super().__init__(message, 409, code)
        self.conflicts = conflicts or []
        self.override_field = override_field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflicts"] = self.conflicts
        data["override_field"] = self.override_field
        return data
