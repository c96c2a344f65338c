# parking_desk/routers/dashboard.py
"""Dashboard counters and data export."""

from typing import Optional

from fastapi import APIRouter, Depends

from parking_desk.dependencies import get_api

router = APIRouter()


@router.get("/dashboard/stats", summary="Parked / discharged counters")
async def dashboard_stats(from_date: Optional[str] = None, to_date: Optional[str] = None,
                          timezone: Optional[str] = None, api=Depends(get_api)):
    params = {k: v for k, v in {"from_date": from_date, "to_date": to_date, "timezone": timezone}.items() if v}
    return await api.get_dashboard_stats(params)


@router.post("/dashboard/export", summary="Export vehicle data for a date range")
async def export_data(from_date: Optional[str] = None, to_date: Optional[str] = None, api=Depends(get_api)):
    return await api.export_data(from_date, to_date)
