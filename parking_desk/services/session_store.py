# parking_desk/services/session_store.py
"""
In-memory registry of operator workflow sessions.
Sessions live for the console process; idle ones are evicted after SESSION_TTL.
"""

import uuid
from datetime import datetime, timedelta
from typing import Union

from parking_desk.exceptions import ParkingDeskError
from parking_desk.services.discharge_workflow import DischargeWorkflow
from parking_desk.services.registration_workflow import RegistrationWorkflow
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)

SESSION_TTL = timedelta(hours=8)    # one desk shift

Workflow = Union[DischargeWorkflow, RegistrationWorkflow]


class SessionNotFoundError(ParkingDeskError):
    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found or expired", 404, "SESSION_NOT_FOUND")


class SessionStore:
    def __init__(self, ttl: timedelta = SESSION_TTL):
        self.ttl = ttl
        self._sessions: dict[str, tuple[Workflow, datetime]] = {}

    def create(self, workflow: Workflow) -> str:
        self.evict_expired()
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = (workflow, datetime.utcnow())
        logger.info(f"[SESSION] Opened {type(workflow).__name__} {session_id[:8]}")
        return session_id

    def get(self, session_id: str, kind: type) -> Workflow:
        entry = self._sessions.get(session_id)
        if entry is None or not isinstance(entry[0], kind):
            raise SessionNotFoundError(session_id)
        workflow, last_used = entry
        if datetime.utcnow() - last_used > self.ttl:
            del self._sessions[session_id]
            raise SessionNotFoundError(session_id)
        self._sessions[session_id] = (workflow, datetime.utcnow())
        return workflow

    def close(self, session_id: str):
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)
        logger.info(f"[SESSION] Closed {session_id[:8]}")

    def evict_expired(self) -> int:
        now = datetime.utcnow()
        expired = [sid for sid, (_, used) in self._sessions.items() if now - used > self.ttl]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"[SESSION] Evicted {len(expired)} idle session(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
