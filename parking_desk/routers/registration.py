# parking_desk/routers/registration.py
"""Vehicle registration sessions: a single vehicle or a batch for one owner."""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from parking_desk.dependencies import get_api, get_camera_factory, get_sessions, get_storage
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.workflow import ModeUpdate, OtpCode, RegistrationFormUpdate, SessionOut, SubmitRequest
from parking_desk.services.registration_workflow import RegistrationWorkflow
from parking_desk.services.session_store import SessionStore
from parking_desk.services.storage_service import ImageFile

router = APIRouter(prefix="/registration")


def _workflow(session_id: str, sessions: SessionStore = Depends(get_sessions)) -> RegistrationWorkflow:
    return sessions.get(session_id, RegistrationWorkflow)


@router.post("/sessions", response_model=SessionOut, summary="Open a registration session")
def open_session(api=Depends(get_api), storage=Depends(get_storage),
                 camera_factory=Depends(get_camera_factory), sessions: SessionStore = Depends(get_sessions)):
    workflow = RegistrationWorkflow(api, storage, camera_factory)
    session_id = sessions.create(workflow)
    return SessionOut(session_id=session_id, state=workflow.snapshot())


@router.get("/sessions/{session_id}")
def get_state(wf: RegistrationWorkflow = Depends(_workflow)):
    return wf.snapshot()


@router.delete("/sessions/{session_id}")
def close_session(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    sessions.close(session_id)
    return {"status": "closed", "session_id": session_id}


@router.patch("/sessions/{session_id}/form", summary="Update registration form fields")
def update_form(body: RegistrationFormUpdate, wf: RegistrationWorkflow = Depends(_workflow)):
    wf.update(**body.model_dump(exclude_unset=True))
    return wf.snapshot()


@router.post("/sessions/{session_id}/form/vehicles", summary="Add another vehicle number field")
def add_vehicle_field(wf: RegistrationWorkflow = Depends(_workflow)):
    wf.add_vehicle_field()
    return wf.snapshot()


@router.delete("/sessions/{session_id}/form/vehicles/{index}")
def remove_vehicle_field(index: int, wf: RegistrationWorkflow = Depends(_workflow)):
    wf.remove_vehicle_field(index)
    return wf.snapshot()


@router.post("/sessions/{session_id}/token-number", summary="Ask the backend for a fresh token number")
async def generate_token_number(wf: RegistrationWorkflow = Depends(_workflow)):
    await wf.generate_token_number()
    return wf.snapshot()


@router.put("/sessions/{session_id}/mode")
def set_mode(body: ModeUpdate, wf: RegistrationWorkflow = Depends(_workflow)):
    wf.set_mode(body.mode)
    return wf.snapshot()


@router.post("/sessions/{session_id}/otp/send")
async def send_otp(wf: RegistrationWorkflow = Depends(_workflow)):
    await wf.send_otp()
    return wf.snapshot()


@router.post("/sessions/{session_id}/otp/verify")
async def verify_otp(body: OtpCode, wf: RegistrationWorkflow = Depends(_workflow)):
    await wf.verify_otp(body.code)
    return wf.snapshot()


@router.post("/sessions/{session_id}/image/verify")
def verify_image(wf: RegistrationWorkflow = Depends(_workflow)):
    wf.verify_image()
    return wf.snapshot()


@router.post("/sessions/{session_id}/images", summary="Upload a vehicle image")
async def upload_image(index: Optional[int] = None, file: UploadFile = File(...),
                       wf: RegistrationWorkflow = Depends(_workflow)):
    image = ImageFile(content=await file.read(), filename=file.filename or "upload.jpg",
                      content_type=file.content_type or "application/octet-stream")
    await wf.upload_vehicle_image(image, index)
    return wf.snapshot()


@router.post("/sessions/{session_id}/images/capture", summary="Capture a vehicle image from the desk camera")
async def capture_image(index: Optional[int] = None, wf: RegistrationWorkflow = Depends(_workflow)):
    await wf.capture_vehicle_image(index)
    return wf.snapshot()


@router.post("/sessions/{session_id}/submit", response_model=BulkSubmissionResult)
async def submit(body: SubmitRequest = SubmitRequest(), wf: RegistrationWorkflow = Depends(_workflow)):
    return await wf.submit(allow_duplicate=body.allow_duplicate)


@router.post("/sessions/{session_id}/submit/override", response_model=BulkSubmissionResult,
             summary="Resubmit after a token conflict, allowing the duplicate")
async def submit_override(wf: RegistrationWorkflow = Depends(_workflow)):
    return await wf.resubmit_with_override()
