# parking_desk/schemas/workflow.py
from pydantic import BaseModel
from typing import Optional

from parking_desk.schemas.vehicle import ImageMode, VehicleFilters
from parking_desk.services.verification import VerificationMode


class SessionOpen(BaseModel):
    filters: Optional[VehicleFilters] = None


class ModeUpdate(BaseModel):
    mode: VerificationMode


class OtpCode(BaseModel):
    code: str


class SubmitRequest(BaseModel):
    allow_duplicate: bool = False


class RegistrationFormUpdate(BaseModel):
    vehicle_numbers: Optional[list[str]] = None
    mobile_number: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    token_number: Optional[str] = None
    image_mode: Optional[ImageMode] = None
    vehicle_image_url: Optional[str] = None
    vehicle_image_urls: Optional[list[str]] = None


class SessionOut(BaseModel):
    session_id: str
    state: dict
