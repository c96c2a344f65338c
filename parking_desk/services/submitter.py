# parking_desk/services/submitter.py
"""
Bulk Action Submitter: one request for every selected identifier, guarded
against double submission because the backend bulk calls are not idempotent.

The in-flight flag is claimed before the first await, so a second call made
while the first is outstanding is rejected without touching the network.
"""

from typing import Optional

from parking_desk.exceptions import ConflictError, NotVerifiedError, SubmitInProgressError, ValidationError
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import VehicleRegistration
from parking_desk.services.parking_api import ParkingApiClient
from parking_desk.services.verification import VerificationState, can_submit
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)


class BulkActionSubmitter:
    def __init__(self, api: ParkingApiClient):
        self.api = api
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _claim(self, state: VerificationState):
        if self._in_flight:
            raise SubmitInProgressError()
        if not can_submit(state):
            raise NotVerifiedError(
                "Please send and verify OTP first" if state.mode.value == "otp"
                else "Please verify the vehicle image first"
            )
        self._in_flight = True

    async def discharge(self, vehicle_ids: list[str], state: VerificationState,
                        discharge_photo_url: Optional[str] = None,
                        allow_duplicate: bool = False) -> BulkSubmissionResult:
        if not vehicle_ids:
            raise ValidationError("Please select at least one vehicle")
        self._claim(state)
        try:
            result = await self.api.discharge_vehicles(
                vehicle_ids, state.mode.value,
                discharge_image_url=discharge_photo_url,
                allow_duplicate=allow_duplicate,
            )
        except ConflictError as e:
            logger.warning(f"[DISCHARGE] Conflict on {len(vehicle_ids)} vehicle(s): {e.message}")
            raise
        finally:
            self._in_flight = False

        logger.info(f"[DISCHARGE] {result.count} vehicle(s) discharged via {state.mode.value}"
                    f"{' (override)' if allow_duplicate else ''}")
        return result

    async def register(self, registration: VehicleRegistration, state: VerificationState,
                       allow_duplicate: bool = False) -> BulkSubmissionResult:
        self._claim(state)
        try:
            result = await self.api.register_vehicle(registration, state.mode.value,
                                                     allow_duplicate=allow_duplicate)
        except ConflictError as e:
            logger.warning(f"[REGISTER] Conflict for token {registration.token_number}: {e.message}")
            raise
        finally:
            self._in_flight = False

        logger.info(f"[REGISTER] {result.count} vehicle(s) registered via {state.mode.value}"
                    f"{' (override)' if allow_duplicate else ''}")
        return result
