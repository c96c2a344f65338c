# parking_desk/services/registration_workflow.py
"""
Vehicle registration (single or bulk) for one operator.

Same strategy/tracker/submitter shape as discharge, except the OTP binds to
the mobile number typed into the form. Editing that number invalidates any
OTP already verified. Image mode becomes available once a vehicle photo is
uploaded and the operator attests it. Manual verification is not offered.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

import pydantic

from parking_desk.exceptions import ConflictError, ValidationError
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import ImageMode, VehicleRegistration
from parking_desk.services.camera_service import CaptureSession, IpCameraDevice
from parking_desk.services.image_verification import ImageVerificationTracker
from parking_desk.services.otp_service import OtpTracker
from parking_desk.services.parking_api import OtpPurpose, ParkingApiClient
from parking_desk.services.storage_service import VEHICLES_FOLDER, ImageFile, StorageService
from parking_desk.services.submitter import BulkActionSubmitter
from parking_desk.services.verification import (
    ImageVerification, OtpVerification, VerificationController, VerificationMode, describe,
)
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)

REGISTRATION_MODES = (VerificationMode.OTP, VerificationMode.IMAGE)


@dataclass
class RegistrationDraft:
    vehicle_numbers: list[str] = field(default_factory=lambda: [""])
    mobile_number: str = ""
    name: str = ""
    address: str = ""
    token_number: Optional[str] = None
    image_mode: ImageMode = ImageMode.SINGLE
    vehicle_image_url: Optional[str] = None
    vehicle_image_urls: list[str] = field(default_factory=list)

    def image_refs(self) -> list[str]:
        urls = list(self.vehicle_image_urls) if self.image_mode == ImageMode.MULTIPLE else []
        if self.vehicle_image_url:
            urls.append(self.vehicle_image_url)
        return [u for u in urls if u]


def _first_error(exc: pydantic.ValidationError) -> str:
    msg = exc.errors()[0].get("msg", "Please check your input and try again.")
    return msg.removeprefix("Value error, ")


class RegistrationWorkflow:
    def __init__(self, api: ParkingApiClient, storage: StorageService, device_factory=IpCameraDevice):
        self.api = api
        self.draft = RegistrationDraft()
        self.verification = VerificationController(VerificationMode.OTP, allowed_modes=REGISTRATION_MODES)
        self.otp = OtpTracker(api, OtpPurpose.REGISTER)
        self.images = ImageVerificationTracker()
        self.submitter = BulkActionSubmitter(api)
        self.capture = CaptureSession(storage, device_factory)
        self.pending_conflict: Optional[ConflictError] = None
        self.last_result: Optional[BulkSubmissionResult] = None

    # ── Form ──────────────────────────────────────────────────────────────
    def update(self, **fields):
        unknown = set(fields) - set(asdict(self.draft))
        if unknown:
            raise ValidationError(f"Unknown registration field(s): {', '.join(sorted(unknown))}")

        mobile_changed = "mobile_number" in fields and fields["mobile_number"] != self.draft.mobile_number
        if "image_mode" in fields:
            fields["image_mode"] = ImageMode(fields["image_mode"])
            if fields["image_mode"] != self.draft.image_mode:
                fields.setdefault("vehicle_image_urls",
                                  [""] * len(fields.get("vehicle_numbers", self.draft.vehicle_numbers))
                                  if fields["image_mode"] == ImageMode.MULTIPLE else [])
        for key, value in fields.items():
            setattr(self.draft, key, value)

        if mobile_changed:
            # Proof of the old number says nothing about the new one
            self.verification.reset(self.draft.image_refs())
        elif {"vehicle_image_url", "vehicle_image_urls", "image_mode"} & set(fields):
            self.verification.update_image_refs(self.draft.image_refs())
        if {"token_number", "vehicle_numbers", "mobile_number"} & set(fields):
            self.pending_conflict = None

    def add_vehicle_field(self):
        self.draft.vehicle_numbers.append("")
        if self.draft.image_mode == ImageMode.MULTIPLE:
            self.draft.vehicle_image_urls.append("")

    def remove_vehicle_field(self, index: int):
        if len(self.draft.vehicle_numbers) <= 1:
            raise ValidationError("At least one vehicle number field is required")
        if not 0 <= index < len(self.draft.vehicle_numbers):
            raise ValidationError(f"No vehicle field at position {index}")
        del self.draft.vehicle_numbers[index]
        if self.draft.image_mode == ImageMode.MULTIPLE and index < len(self.draft.vehicle_image_urls):
            del self.draft.vehicle_image_urls[index]
            self.verification.update_image_refs(self.draft.image_refs())

    def build_registration(self) -> VehicleRegistration:
        try:
            return VehicleRegistration(**asdict(self.draft))
        except pydantic.ValidationError as e:
            raise ValidationError(_first_error(e))

    async def generate_token_number(self) -> str:
        token_number = await self.api.generate_token_number()
        self.update(token_number=token_number)
        return token_number

    # ── Verification ──────────────────────────────────────────────────────
    def set_mode(self, mode: VerificationMode):
        self.verification.set_mode(mode)
        self.pending_conflict = None

    async def send_otp(self):
        state = self.verification.state
        if not isinstance(state, OtpVerification):
            raise ValidationError("Switch to OTP verification first")
        mobile_number = self.draft.mobile_number.strip()
        if not mobile_number:
            raise ValidationError("Please enter mobile number first")
        try:
            VehicleRegistration.model_validate({"vehicle_numbers": ["-"], "mobile_number": mobile_number})
        except pydantic.ValidationError as e:
            raise ValidationError(_first_error(e))
        await self.otp.send(state, mobile_number)

    async def verify_otp(self, code: str):
        state = self.verification.state
        if not isinstance(state, OtpVerification):
            raise ValidationError("Switch to OTP verification first")
        if state.mobile_number and state.mobile_number != self.draft.mobile_number.strip():
            raise ValidationError("Mobile number changed since the OTP was sent. Please resend.")
        await self.otp.verify(state, code)

    def verify_image(self):
        state = self.verification.state
        if not isinstance(state, ImageVerification):
            raise ValidationError("Switch to image verification first")
        self.images.mark_verified(state)

    # ── Vehicle images ────────────────────────────────────────────────────
    def _store_image_url(self, url: str, index: Optional[int]):
        if index is not None and self.draft.image_mode == ImageMode.MULTIPLE:
            urls = list(self.draft.vehicle_image_urls)
            urls += [""] * (index + 1 - len(urls))
            urls[index] = url
            self.update(vehicle_image_urls=urls)
        else:
            self.update(vehicle_image_url=url)

    async def upload_vehicle_image(self, image: ImageFile, index: Optional[int] = None) -> str:
        url = await self.capture.upload(image, VEHICLES_FOLDER)
        self._store_image_url(url, index)
        return url

    async def capture_vehicle_image(self, index: Optional[int] = None) -> str:
        url = await self.capture.capture_and_upload(VEHICLES_FOLDER)
        self._store_image_url(url, index)
        return url

    # ── Submission ────────────────────────────────────────────────────────
    def can_submit(self) -> bool:
        return self.verification.can_submit() and not self.submitter.in_flight

    async def submit(self, allow_duplicate: bool = False) -> BulkSubmissionResult:
        registration = self.build_registration()
        try:
            result = await self.submitter.register(registration, self.verification.state,
                                                   allow_duplicate=allow_duplicate)
        except ConflictError as e:
            self.pending_conflict = e
            raise

        self.last_result = result
        self.draft = RegistrationDraft()
        self.verification = VerificationController(VerificationMode.OTP, allowed_modes=REGISTRATION_MODES)
        self.pending_conflict = None
        return result

    async def resubmit_with_override(self) -> BulkSubmissionResult:
        if self.pending_conflict is None:
            raise ValidationError("There is no conflict to override")
        return await self.submit(allow_duplicate=True)

    # ── View ──────────────────────────────────────────────────────────────
    def snapshot(self) -> dict:
        state = self.verification.state
        draft = asdict(self.draft)
        draft["image_mode"] = self.draft.image_mode.value
        return {
            "draft": draft,
            "verification": describe(state),
            "can_submit": self.can_submit(),
            "submitting": self.submitter.in_flight,
            "capturing": self.capture.busy,
            "mode_suggestion": self.images.suggestion(state) if isinstance(state, ImageVerification) else None,
            "pending_conflict": self.pending_conflict.to_dict() if self.pending_conflict else None,
            "last_result": self.last_result.model_dump() if self.last_result else None,
        }
