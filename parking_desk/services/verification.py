# parking_desk/services/verification.py
"""
Verification state for a discharge or registration, as one tagged union
owned by VerificationController.

    OtpVerification     send → enter code → verify → verified
    ImageVerification   unavailable | available → verified (operator attests)
    ManualVerification  nothing to prove

Any mode switch or selection change replaces the state object with a fresh
one, so no field of a previous attempt survives. Trackers that are still
awaiting the network hold the old object and cannot touch the new one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

from parking_desk.exceptions import ValidationError


class VerificationMode(str, Enum):
    OTP = "otp"
    IMAGE = "image"
    MANUAL = "manual"


class OtpStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SENT = "sent"
    VERIFYING = "verifying"
    VERIFIED = "verified"


class ImageStatus(str, Enum):
    UNAVAILABLE = "unavailable"
    AVAILABLE = "available"
    VERIFIED = "verified"


@dataclass
class OtpVerification:
    status: OtpStatus = OtpStatus.IDLE
    mobile_number: Optional[str] = None
    code: str = ""
    mode: VerificationMode = field(default=VerificationMode.OTP, init=False)

    @property
    def sent(self) -> bool:
        return self.status in (OtpStatus.SENT, OtpStatus.VERIFYING, OtpStatus.VERIFIED)

    @property
    def verified(self) -> bool:
        return self.status == OtpStatus.VERIFIED


@dataclass
class ImageVerification:
    image_refs: list[str] = field(default_factory=list)
    status: ImageStatus = ImageStatus.UNAVAILABLE
    mode: VerificationMode = field(default=VerificationMode.IMAGE, init=False)

    def __post_init__(self):
        if self.status == ImageStatus.UNAVAILABLE and self.image_refs:
            self.status = ImageStatus.AVAILABLE

    @property
    def verified_flag(self) -> bool:
        return self.status == ImageStatus.VERIFIED


@dataclass
class ManualVerification:
    mode: VerificationMode = field(default=VerificationMode.MANUAL, init=False)


VerificationState = Union[OtpVerification, ImageVerification, ManualVerification]


def initial_state(mode: VerificationMode, image_refs: Iterable[str] = ()) -> VerificationState:
    mode = VerificationMode(mode)
    if mode == VerificationMode.OTP:
        return OtpVerification()
    if mode == VerificationMode.IMAGE:
        return ImageVerification(image_refs=[r for r in image_refs if r and r.strip()])
    return ManualVerification()


def can_submit(state: VerificationState) -> bool:
    if isinstance(state, ManualVerification):
        return True
    if isinstance(state, OtpVerification):
        return state.verified
    return state.verified_flag


def describe(state: VerificationState) -> dict:
    """Serializable view of the state for the console UI."""
    view = {"mode": state.mode.value, "can_submit": can_submit(state)}
    if isinstance(state, OtpVerification):
        view.update(otp_status=state.status.value, sent=state.sent, verified=state.verified,
                    mobile_number=state.mobile_number, code=state.code)
    elif isinstance(state, ImageVerification):
        view.update(image_status=state.status.value, verified_flag=state.verified_flag,
                    image_refs=list(state.image_refs))
    return view


class VerificationController:
    """Owns the active VerificationState and the only transitions between modes."""

    def __init__(self, mode: VerificationMode = VerificationMode.OTP,
                 allowed_modes: Iterable[VerificationMode] = tuple(VerificationMode)):
        self.allowed_modes = tuple(VerificationMode(m) for m in allowed_modes)
        self._image_refs: list[str] = []
        self.state: VerificationState = initial_state(self._check(mode))

    def _check(self, mode) -> VerificationMode:
        try:
            mode = VerificationMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown verification method '{mode}'")
        if mode not in self.allowed_modes:
            raise ValidationError(f"Verification method '{mode.value}' is not available here")
        return mode

    @property
    def mode(self) -> VerificationMode:
        return self.state.mode

    def set_mode(self, new_mode: VerificationMode):
        new_mode = self._check(new_mode)
        if new_mode != self.mode:
            self.state = initial_state(new_mode, self._image_refs)

    def reset(self, image_refs: Optional[Iterable[str]] = None):
        """Fresh state for the current mode, e.g. after the selection changed."""
        if image_refs is not None:
            self._image_refs = list(image_refs)
        self.state = initial_state(self.mode, self._image_refs)

    def update_image_refs(self, image_refs: Iterable[str]):
        """New reference images; only an image-mode attestation is invalidated."""
        self._image_refs = list(image_refs)
        if isinstance(self.state, ImageVerification):
            self.state = initial_state(VerificationMode.IMAGE, self._image_refs)

    def can_submit(self) -> bool:
        return can_submit(self.state)
