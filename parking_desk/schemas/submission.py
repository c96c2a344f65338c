# parking_desk/schemas/submission.py
from pydantic import BaseModel, Field
from typing import Optional


class BulkSubmissionResult(BaseModel):
    """Outcome of one successful discharge or registration call."""

    count: int
    vehicle_ids: list[str] = Field(default_factory=list)
    token_number: Optional[str] = None
    message: Optional[str] = None
