# parking_desk/schemas/vehicle.py
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from enum import Enum
from typing import Optional

from parking_desk.config import settings


class VehicleStatus(str, Enum):
    PARKED = "parked"
    DISCHARGED = "discharged"


class VehicleRecord(BaseModel):
    """One vehicle as returned by the remote parking API."""

    id: str
    vehicle_number: str
    mobile_number: str = ""
    name: Optional[str] = None
    address: Optional[str] = None
    status: VehicleStatus = VehicleStatus.PARKED
    registered_at: Optional[datetime] = None
    discharged_at: Optional[datetime] = None
    vehicle_image_url: Optional[str] = None
    discharge_image_url: Optional[str] = None
    token_number: Optional[str] = None

    @field_validator("id", "mobile_number", mode="before")
    @classmethod
    def _coerce_str(cls, v):
        # Spreadsheet-backed API returns numeric ids and phone numbers
        return "" if v is None else str(v)

    @field_validator("registered_at", "discharged_at", mode="before")
    @classmethod
    def _blank_dates(cls, v):
        return v or None

    @property
    def has_image(self) -> bool:
        return bool(self.vehicle_image_url and self.vehicle_image_url.strip())


class VehicleFilters(BaseModel):
    status: Optional[VehicleStatus] = None
    vehicle_number: Optional[str] = None    # partial match
    mobile_number: Optional[str] = None     # partial match
    from_date: Optional[str] = None         # YYYY-MM-DD
    to_date: Optional[str] = None
    timezone: Optional[str] = None

    def to_params(self) -> dict:
        """Query params with empty filters omitted."""
        return {k: (v.value if isinstance(v, Enum) else v)
                for k, v in self.model_dump().items() if v}


class VehicleUpdate(BaseModel):
    vehicle_number: Optional[str] = None
    mobile_number: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    token_number: Optional[str] = None
    vehicle_image_url: Optional[str] = None


class ImageMode(str, Enum):
    SINGLE = "single"       # one image shared by every vehicle in the batch
    MULTIPLE = "multiple"   # one image per vehicle


class VehicleRegistration(BaseModel):
    """Registration form for one vehicle or a batch sharing one owner."""

    vehicle_numbers: list[str] = Field(default_factory=list)
    mobile_number: str
    name: Optional[str] = None
    address: Optional[str] = None
    token_number: Optional[str] = None
    image_mode: ImageMode = ImageMode.SINGLE
    vehicle_image_url: Optional[str] = None
    vehicle_image_urls: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_rows(cls, data):
        # vehicle_image_urls is positional; a blank row takes its image with it
        if not isinstance(data, dict) or not isinstance(data.get("vehicle_numbers"), list):
            return data
        numbers = data["vehicle_numbers"]
        urls = list(data.get("vehicle_image_urls") or [])
        keep = [i for i, n in enumerate(numbers) if isinstance(n, str) and n.strip()]
        data = dict(data)
        data["vehicle_numbers"] = [numbers[i] for i in keep]
        if urls:
            data["vehicle_image_urls"] = [urls[i] if i < len(urls) else "" for i in keep]
        return data

    @field_validator("vehicle_numbers")
    @classmethod
    def _drop_blank_numbers(cls, v: list[str]) -> list[str]:
        numbers = [n.strip() for n in v if n and n.strip()]
        if not numbers:
            raise ValueError("Vehicle number is required.")
        for n in numbers:
            if len(n) > settings.VEHICLE_NUMBER_MAX_LENGTH:
                raise ValueError(f"Vehicle number '{n}' is longer than {settings.VEHICLE_NUMBER_MAX_LENGTH} characters")
        return numbers

    @field_validator("mobile_number")
    @classmethod
    def _check_mobile(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Mobile number is required.")
        if not v.isdigit() or len(v) != settings.MOBILE_NUMBER_LENGTH:
            raise ValueError(f"Mobile number must be {settings.MOBILE_NUMBER_LENGTH} digits")
        return v

    @model_validator(mode="after")
    def _check_lengths(self):
        if self.name and len(self.name) > settings.NAME_MAX_LENGTH:
            raise ValueError(f"Name must be at most {settings.NAME_MAX_LENGTH} characters")
        if self.address and len(self.address) > settings.ADDRESS_MAX_LENGTH:
            raise ValueError(f"Address must be at most {settings.ADDRESS_MAX_LENGTH} characters")
        return self

    @property
    def is_bulk(self) -> bool:
        return len(self.vehicle_numbers) > 1

    def image_urls(self) -> list[str]:
        """Non-empty image references attached to this registration."""
        urls = list(self.vehicle_image_urls) if self.image_mode == ImageMode.MULTIPLE else []
        if self.vehicle_image_url:
            urls.append(self.vehicle_image_url)
        return [u for u in urls if u and u.strip()]

    def to_form(self) -> dict:
        """Form fields in the shape registerVehicle expects."""
        data = {
            "mobile_number": self.mobile_number,
            "name": self.name or "",
            "address": self.address or "",
            "token_number": self.token_number,
            "status": VehicleStatus.PARKED.value,
        }
        if not self.is_bulk:
            data["vehicle_number"] = self.vehicle_numbers[0]
            data["vehicle_image_url"] = self.vehicle_image_url or ""
            return data

        if self.image_mode == ImageMode.SINGLE:
            urls = [self.vehicle_image_url or "" for _ in self.vehicle_numbers]
            primary = self.vehicle_image_url or ""
        else:
            urls = (self.vehicle_image_urls + [""] * len(self.vehicle_numbers))[:len(self.vehicle_numbers)]
            primary = next((u for u in urls if u), self.vehicle_image_url or "")
        data["vehicle_numbers"] = self.vehicle_numbers
        data["vehicle_image_urls"] = urls
        data["vehicle_image_url"] = primary
        return data
