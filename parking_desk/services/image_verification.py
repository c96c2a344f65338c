# parking_desk/services/image_verification.py
"""
Image verification: the operator compares the registered photo(s) with the
vehicle in front of them and attests the match. No image comparison is
performed by the console.
"""

from parking_desk.exceptions import ValidationError
from parking_desk.services.verification import ImageStatus, ImageVerification
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)


class ImageVerificationTracker:
    def mark_verified(self, state: ImageVerification):
        if state.status == ImageStatus.VERIFIED:
            return
        if state.status == ImageStatus.UNAVAILABLE:
            raise ValidationError("Selected vehicles do not have images for verification. Use OTP instead.",
                                  "NO_IMAGES")
        state.status = ImageStatus.VERIFIED
        logger.info(f"[IMAGE] Operator attested match against {len(state.image_refs)} image(s)")

    @staticmethod
    def suggestion(state: ImageVerification) -> str | None:
        """Mode-switch hint shown while image verification is impossible."""
        if state.status == ImageStatus.UNAVAILABLE:
            return "otp"
        return None
