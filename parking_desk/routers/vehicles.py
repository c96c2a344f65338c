# parking_desk/routers/vehicles.py
"""Vehicle lookups and edits, proxied to the remote parking API."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends

from parking_desk.dependencies import get_api
from parking_desk.schemas.vehicle import VehicleFilters, VehicleStatus, VehicleUpdate
from parking_desk.utils.timezone import format_in_timezone, parking_duration, sort_vehicles

router = APIRouter()


def _row(vehicle, tz_name: Optional[str]) -> dict:
    row = vehicle.model_dump(mode="json")
    row["registered_at_display"] = format_in_timezone(vehicle.registered_at, tz_name)
    if vehicle.status == VehicleStatus.PARKED:
        row["parked_for"] = parking_duration(vehicle.registered_at)
    else:
        row["parked_for"] = parking_duration(vehicle.registered_at, vehicle.discharged_at)
    return row


@router.get("/vehicles", summary="List vehicles with filters")
async def list_vehicles(
    status: Optional[VehicleStatus] = None,
    vehicle_number: Optional[str] = None,
    mobile_number: Optional[str] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    timezone: Optional[str] = None,
    sort: Literal["newest", "oldest", "longest_parked"] = "newest",
    api=Depends(get_api),
):
    filters = VehicleFilters(status=status, vehicle_number=vehicle_number, mobile_number=mobile_number,
                             from_date=from_date, to_date=to_date, timezone=timezone)
    vehicles = sort_vehicles(await api.list_vehicles(filters), sort)
    return [_row(v, timezone) for v in vehicles]


@router.get("/vehicles/history/{mobile_number}", summary="Every vehicle registered to a mobile number")
async def customer_history(mobile_number: str, timezone: Optional[str] = None, api=Depends(get_api)):
    vehicles = sort_vehicles(await api.get_customer_history(mobile_number), "newest")
    return [_row(v, timezone) for v in vehicles]


@router.get("/vehicles/{vehicle_id}")
async def get_vehicle(vehicle_id: str, timezone: Optional[str] = None, api=Depends(get_api)):
    return _row(await api.get_vehicle(vehicle_id), timezone)


@router.patch("/vehicles/{vehicle_id}", summary="Edit a vehicle record")
async def update_vehicle(vehicle_id: str, body: VehicleUpdate, api=Depends(get_api)):
    await api.update_vehicle(vehicle_id, body.model_dump(exclude_none=True))
    return {"status": "updated", "id": vehicle_id}
