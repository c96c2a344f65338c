# parking_desk/routers/discharge.py
"""
Bulk discharge sessions.
One session per operator screen: select parked vehicles, prove ownership
(OTP, image attestation or manual), optionally attach a photo of the person
collecting, then discharge everything selected in one call.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from parking_desk.dependencies import get_api, get_camera_factory, get_sessions, get_storage
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import VehicleFilters
from parking_desk.schemas.workflow import ModeUpdate, OtpCode, SessionOpen, SessionOut, SubmitRequest
from parking_desk.services.discharge_workflow import DischargeWorkflow
from parking_desk.services.session_store import SessionStore
from parking_desk.services.storage_service import ImageFile

router = APIRouter(prefix="/discharge")


def _workflow(session_id: str, sessions: SessionStore = Depends(get_sessions)) -> DischargeWorkflow:
    return sessions.get(session_id, DischargeWorkflow)


async def _read_upload(file: UploadFile) -> ImageFile:
    return ImageFile(content=await file.read(), filename=file.filename or "upload.jpg",
                     content_type=file.content_type or "application/octet-stream")


@router.post("/sessions", response_model=SessionOut, summary="Open a discharge session")
async def open_session(body: SessionOpen = SessionOpen(), api=Depends(get_api), storage=Depends(get_storage),
                       camera_factory=Depends(get_camera_factory), sessions: SessionStore = Depends(get_sessions)):
    workflow = DischargeWorkflow(api, storage, camera_factory)
    await workflow.load_vehicles(body.filters)
    session_id = sessions.create(workflow)
    return SessionOut(session_id=session_id, state=workflow.snapshot())


@router.get("/sessions/{session_id}", summary="Current selection and verification state")
def get_state(wf: DischargeWorkflow = Depends(_workflow)):
    return wf.snapshot()


@router.delete("/sessions/{session_id}", summary="Close a discharge session")
def close_session(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    sessions.close(session_id)
    return {"status": "closed", "session_id": session_id}


@router.post("/sessions/{session_id}/vehicles", summary="Reload parked vehicles with filters")
async def reload_vehicles(filters: VehicleFilters = VehicleFilters(), wf: DischargeWorkflow = Depends(_workflow)):
    await wf.load_vehicles(filters)
    return wf.snapshot()


# ── Selection ────────────────────────────────────────────────────────────────
@router.post("/sessions/{session_id}/selection/{vehicle_id}/toggle")
def toggle_vehicle(vehicle_id: str, wf: DischargeWorkflow = Depends(_workflow)):
    wf.toggle(vehicle_id)
    return wf.snapshot()


@router.post("/sessions/{session_id}/selection/all")
def select_all(wf: DischargeWorkflow = Depends(_workflow)):
    wf.select_all()
    return wf.snapshot()


@router.post("/sessions/{session_id}/selection/toggle-all", summary="Header checkbox behaviour")
def toggle_all(wf: DischargeWorkflow = Depends(_workflow)):
    wf.toggle_all()
    return wf.snapshot()


@router.delete("/sessions/{session_id}/selection")
def clear_selection(wf: DischargeWorkflow = Depends(_workflow)):
    wf.clear_all()
    return wf.snapshot()


# ── Verification ─────────────────────────────────────────────────────────────
@router.put("/sessions/{session_id}/mode", summary="Switch verification method")
def set_mode(body: ModeUpdate, wf: DischargeWorkflow = Depends(_workflow)):
    wf.set_mode(body.mode)
    return wf.snapshot()


@router.post("/sessions/{session_id}/otp/send")
async def send_otp(wf: DischargeWorkflow = Depends(_workflow)):
    await wf.send_otp()
    return wf.snapshot()


@router.post("/sessions/{session_id}/otp/verify")
async def verify_otp(body: OtpCode, wf: DischargeWorkflow = Depends(_workflow)):
    await wf.verify_otp(body.code)
    return wf.snapshot()


@router.post("/sessions/{session_id}/image/verify", summary="Operator attests the registered image matches")
def verify_image(wf: DischargeWorkflow = Depends(_workflow)):
    wf.verify_image()
    return wf.snapshot()


# ── Discharge photo ──────────────────────────────────────────────────────────
@router.post("/sessions/{session_id}/photo", summary="Upload photo of the person collecting")
async def upload_photo(file: UploadFile = File(...), wf: DischargeWorkflow = Depends(_workflow)):
    await wf.attach_discharge_photo(await _read_upload(file))
    return wf.snapshot()


@router.post("/sessions/{session_id}/photo/capture", summary="Capture the photo from the desk camera")
async def capture_photo(wf: DischargeWorkflow = Depends(_workflow)):
    await wf.capture_discharge_photo()
    return wf.snapshot()


@router.delete("/sessions/{session_id}/photo")
def remove_photo(wf: DischargeWorkflow = Depends(_workflow)):
    wf.remove_discharge_photo()
    return wf.snapshot()


# ── Submission ───────────────────────────────────────────────────────────────
@router.post("/sessions/{session_id}/submit", response_model=BulkSubmissionResult,
             summary="Discharge every selected vehicle")
async def submit(body: SubmitRequest = SubmitRequest(), wf: DischargeWorkflow = Depends(_workflow)):
    return await wf.submit(allow_duplicate=body.allow_duplicate)


@router.post("/sessions/{session_id}/submit/override", response_model=BulkSubmissionResult,
             summary="Resubmit after a conflict, allowing the duplicate")
async def submit_override(wf: DischargeWorkflow = Depends(_workflow)):
    return await wf.resubmit_with_override()
