# parking_desk/services/discharge_workflow.py
"""
Bulk discharge for one operator.

Selection changes reset verification; the active strategy (OTP, image
attestation or manual) gates the submitter; a successful discharge clears
selection, verification and the discharge photo, then reloads the parked
list. A structured conflict is kept as ``pending_conflict`` until the
operator resubmits with the override flag or changes the selection.
"""

from typing import Optional

from parking_desk.exceptions import ConflictError, NotVerifiedError, ParkingDeskError, ValidationError
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import VehicleFilters, VehicleStatus
from parking_desk.services.camera_service import CaptureSession, IpCameraDevice
from parking_desk.services.image_verification import ImageVerificationTracker
from parking_desk.services.otp_service import OtpTracker
from parking_desk.services.parking_api import OtpPurpose, ParkingApiClient
from parking_desk.services.selection import SelectionSet
from parking_desk.services.storage_service import DISCHARGE_FOLDER, ImageFile, StorageService
from parking_desk.services.submitter import BulkActionSubmitter
from parking_desk.services.verification import (
    ImageVerification, OtpVerification, VerificationController, VerificationMode, describe,
)
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)


class DischargeWorkflow:
    def __init__(self, api: ParkingApiClient, storage: StorageService, device_factory=IpCameraDevice):
        self.api = api
        self.verification = VerificationController(VerificationMode.OTP)
        self.selection = SelectionSet(on_change=self._selection_changed)
        self.otp = OtpTracker(api, OtpPurpose.DISCHARGE)
        self.images = ImageVerificationTracker()
        self.submitter = BulkActionSubmitter(api)
        self.capture = CaptureSession(storage, device_factory)
        self.filters = VehicleFilters(status=VehicleStatus.PARKED)
        self.discharge_photo_url: Optional[str] = None
        self.pending_conflict: Optional[ConflictError] = None
        self.last_result: Optional[BulkSubmissionResult] = None

    def _selection_changed(self):
        self.verification.reset(self.selection.image_refs)
        self.pending_conflict = None

    # ── Vehicle list ──────────────────────────────────────────────────────
    async def load_vehicles(self, filters: Optional[VehicleFilters] = None):
        if filters is not None:
            # Only parked vehicles can be discharged
            self.filters = filters.model_copy(update={"status": VehicleStatus.PARKED})
        vehicles = await self.api.list_vehicles(self.filters)
        self.selection.load(vehicles)
        logger.debug(f"[DISCHARGE] Loaded {len(vehicles)} parked vehicle(s)")
        return vehicles

    # ── Selection ─────────────────────────────────────────────────────────
    def toggle(self, vehicle_id: str):
        self.selection.toggle(vehicle_id)

    def select_all(self):
        self.selection.select_all()

    def clear_all(self):
        self.selection.clear_all()

    def toggle_all(self):
        self.selection.toggle_all()

    # ── Verification ──────────────────────────────────────────────────────
    def set_mode(self, mode: VerificationMode):
        self.verification.set_mode(mode)
        self.pending_conflict = None

    def _state(self, kind, hint: str):
        state = self.verification.state
        if not isinstance(state, kind):
            raise ValidationError(hint)
        return state

    async def send_otp(self):
        state = self._state(OtpVerification, "Switch to OTP verification first")
        if self.selection.is_empty():
            raise ValidationError("Please select at least one vehicle")
        first = self.selection.selected_vehicles[0]
        if not first.mobile_number:
            raise ValidationError("Selected vehicle does not have a mobile number")
        await self.otp.send(state, first.mobile_number, self.selection.mobile_numbers)

    async def verify_otp(self, code: str):
        state = self._state(OtpVerification, "Switch to OTP verification first")
        await self.otp.verify(state, code)

    def verify_image(self):
        state = self._state(ImageVerification, "Switch to image verification first")
        if self.selection.is_empty():
            raise ValidationError("Please select at least one vehicle")
        self.images.mark_verified(state)

    # ── Discharge photo ───────────────────────────────────────────────────
    async def attach_discharge_photo(self, image: ImageFile) -> str:
        self.discharge_photo_url = await self.capture.upload(image, DISCHARGE_FOLDER)
        return self.discharge_photo_url

    async def capture_discharge_photo(self) -> str:
        self.discharge_photo_url = await self.capture.capture_and_upload(DISCHARGE_FOLDER)
        return self.discharge_photo_url

    def remove_discharge_photo(self):
        self.discharge_photo_url = None

    # ── Submission ────────────────────────────────────────────────────────
    def _otp_matches_selection(self) -> bool:
        state = self.verification.state
        if not isinstance(state, OtpVerification) or not state.verified:
            return True
        return state.mobile_number == self.selection.shared_mobile_number()

    def can_submit(self) -> bool:
        return (not self.selection.is_empty()
                and self.verification.can_submit()
                and self._otp_matches_selection()
                and not self.submitter.in_flight)

    async def submit(self, allow_duplicate: bool = False) -> BulkSubmissionResult:
        if not self.selection.is_empty() and not self._otp_matches_selection():
            raise NotVerifiedError("The OTP was verified for a different mobile number. Please send a new OTP")
        try:
            result = await self.submitter.discharge(
                self.selection.ids, self.verification.state,
                discharge_photo_url=self.discharge_photo_url,
                allow_duplicate=allow_duplicate,
            )
        except ConflictError as e:
            self.pending_conflict = e
            raise

        self.last_result = result
        self._reset_after_success()
        try:
            await self.load_vehicles()
        except ParkingDeskError as e:
            logger.warning(f"[DISCHARGE] Reload after discharge failed: {e.message}")
        return result

    async def resubmit_with_override(self) -> BulkSubmissionResult:
        if self.pending_conflict is None:
            raise ValidationError("There is no conflict to override")
        return await self.submit(allow_duplicate=True)

    def _reset_after_success(self):
        self.selection.clear_all()
        self.verification.set_mode(VerificationMode.OTP)
        self.discharge_photo_url = None
        self.pending_conflict = None

    # ── View ──────────────────────────────────────────────────────────────
    def snapshot(self) -> dict:
        state = self.verification.state
        view = {
            "vehicles": [v.model_dump(mode="json") for v in self.selection.vehicles],
            "selected_ids": self.selection.ids,
            "selected_image_refs": self.selection.image_refs,
            "shared_mobile_number": self.selection.shared_mobile_number(),
            "verification": describe(state),
            "discharge_photo_url": self.discharge_photo_url,
            "can_submit": self.can_submit(),
            "submitting": self.submitter.in_flight,
            "capturing": self.capture.busy,
            "mode_suggestion": self.images.suggestion(state) if isinstance(state, ImageVerification) else None,
            "pending_conflict": self.pending_conflict.to_dict() if self.pending_conflict else None,
            "last_result": self.last_result.model_dump() if self.last_result else None,
        }
        return view
