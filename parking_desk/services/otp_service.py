# parking_desk/services/otp_service.py
"""
OTP lifecycle for one phone number bound to the current selection or form.

    Idle → Sending → Sent → Verifying → Verified
    Sending   --error--> Idle
    Verifying --error--> Sent

All preconditions are checked before any request is made.
"""

from typing import Optional, Sequence

from parking_desk.config import settings
from parking_desk.exceptions import ParkingDeskError, ValidationError
from parking_desk.services.parking_api import OtpPurpose, ParkingApiClient
from parking_desk.services.verification import OtpStatus, OtpVerification
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)


def _mask(mobile_number: str) -> str:
    return f"******{mobile_number[-4:]}" if len(mobile_number) > 4 else mobile_number


class OtpTracker:
    def __init__(self, api: ParkingApiClient, purpose: OtpPurpose):
        self.api = api
        self.purpose = OtpPurpose(purpose)

    async def send(self, state: OtpVerification, mobile_number: str,
                   selected_mobiles: Optional[Sequence[str]] = None):
        """
        Request a code for ``mobile_number``. For discharge, ``selected_mobiles``
        are the owners' numbers of every selected vehicle and must all match.
        """
        if state.status in (OtpStatus.SENDING, OtpStatus.VERIFYING):
            raise ValidationError("An OTP request is already in progress")
        if state.verified:
            raise ValidationError("OTP already verified")
        if selected_mobiles is not None:
            if not selected_mobiles:
                raise ValidationError("Please select at least one vehicle")
            if any(m != mobile_number for m in selected_mobiles):
                raise ValidationError("All selected vehicles must have the same mobile number for bulk discharge",
                                      "MOBILE_MISMATCH")
        if not mobile_number:
            raise ValidationError("Mobile number is required.")

        state.status = OtpStatus.SENDING
        state.mobile_number = mobile_number
        state.code = ""
        try:
            data = await self.api.send_otp(mobile_number, self.purpose)
        except ParkingDeskError:
            state.status = OtpStatus.IDLE
            raise

        state.status = OtpStatus.SENT
        if settings.OTP_AUTOFILL and data.get("otpCode"):
            state.code = str(data["otpCode"])
        logger.info(f"[OTP] Sent {self.purpose.value} code to {_mask(mobile_number)}")

    async def verify(self, state: OtpVerification, code: str):
        if state.status != OtpStatus.SENT:
            raise ValidationError("Please send the OTP first" if not state.sent else "OTP already verified")
        code = (code or "").strip()
        if len(code) != settings.OTP_LENGTH or not code.isdigit():
            raise ValidationError(f"Please enter a valid {settings.OTP_LENGTH}-digit OTP", "INVALID_OTP_FORMAT")

        state.code = code
        state.status = OtpStatus.VERIFYING
        try:
            await self.api.verify_otp(state.mobile_number, code, self.purpose)
        except ParkingDeskError:
            state.status = OtpStatus.SENT
            raise

        state.status = OtpStatus.VERIFIED
        logger.info(f"[OTP] Verified {self.purpose.value} code for {_mask(state.mobile_number)}")
