# parking_desk/services/parking_api.py
"""
Client for the remote parking API.

Every operation is a single request to PARKING_API_BASE_URL selected by an
``action`` parameter: writes are form-encoded POSTs, reads are GETs with
query params. The API answers with an envelope:

    {"success": true,  "data": {...}}
    {"success": false, "error": {"message": "...", "code": "...", "conflicts": [...]}}

Envelope failures are mapped onto the console's error taxonomy here so the
workflows never look at raw responses.
"""

from enum import Enum
from typing import Optional, Union

import httpx

from parking_desk.config import settings
from parking_desk.exceptions import ConflictError, InvalidCodeError, ServiceError
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import VehicleFilters, VehicleRecord, VehicleRegistration
from parking_desk.utils.json_parser import encode_form_fields, get_nested, is_html_body, safe_parse_json
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."
NETWORK_ERROR = "Network error. Please check your connection."

CONFLICT_CODES = {"CONFLICT", "DUPLICATE_TOKEN", "DUPLICATE_VEHICLE"}
INVALID_OTP_CODES = {"INVALID_OTP", "OTP_EXPIRED", "OTP_MISMATCH"}


class OtpPurpose(str, Enum):
    REGISTER = "register"
    DISCHARGE = "discharge"


class Action:
    LOGIN = "login"
    LOGOUT = "logout"
    CHANGE_PASSWORD = "changePassword"
    REGISTER_VEHICLE = "registerVehicle"
    DISCHARGE_VEHICLE = "dischargeVehicle"
    UPDATE_VEHICLE = "updateVehicle"
    LIST_VEHICLES = "listVehicles"
    GET_VEHICLE = "getVehicle"
    GET_CUSTOMER_HISTORY = "getCustomerHistory"
    GENERATE_TOKEN_NUMBER = "generateTokenNumber"
    SEND_OTP = "sendOTP"
    VERIFY_OTP = "verifyOTP"
    GET_DASHBOARD_STATS = "getDashboardStats"
    EXPORT_DATA = "exportData"
    CREATE_EMPLOYEE = "createEmployee"
    UPDATE_EMPLOYEE = "updateEmployee"
    DELETE_EMPLOYEE = "deleteEmployee"
    LIST_EMPLOYEES = "listEmployees"
    GET_EMPLOYEE = "getEmployee"
    REGISTER_COMPANY = "registerCompany"
    CREATE_COMPANY = "createCompany"
    UPDATE_COMPANY = "updateCompany"
    DELETE_COMPANY = "deleteCompany"
    LIST_COMPANIES = "listCompanies"
    GET_COMPANY = "getCompany"


def _error_from_envelope(envelope: dict, status_code: int, rejection=ServiceError):
    """Build the exception for a ``success: false`` envelope or a 4xx reply."""
    err = envelope.get("error")
    if isinstance(err, str):
        err = {"message": err}
    err = err or {}

    message = err.get("message") or envelope.get("message") or GENERIC_ERROR
    code = err.get("code") or envelope.get("code")
    conflicts = err.get("conflicts") or get_nested(envelope, "data", "conflicts") or envelope.get("conflicts")

    if code in CONFLICT_CODES or conflicts:
        return ConflictError(message, conflicts=conflicts or [], code=code or "CONFLICT")
    if code in INVALID_OTP_CODES:
        return InvalidCodeError(message)
    if status_code == 401:
        return ServiceError(message, "UNAUTHORIZED")
    if code:
        return ServiceError(message, code)
    return rejection(message)


class ParkingApiClient:
    """Async client for the remote parking API. One instance per console process."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url or settings.PARKING_API_BASE_URL
        self.token = token if token is not None else settings.PARKING_API_TOKEN
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.PARKING_API_TIMEOUT,
            follow_redirects=True,      # Script-hosted backends answer through a redirect
            max_redirects=5,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    # ── Transport ─────────────────────────────────────────────────────────
    def _auth(self, required: bool) -> tuple[dict, dict]:
        """Token as a form/query field plus bearer header. Raises if required and missing."""
        if not self.token:
            if required:
                raise ServiceError("Authentication required", "UNAUTHORIZED")
            return {}, {}
        return {"token": self.token}, {"Authorization": f"Bearer {self.token}"}

    async def _send(self, method: str, action: str, fields: dict, auth_required: bool,
                    rejection=ServiceError, timeout: Optional[float] = None):
        token_field, headers = self._auth(auth_required)
        payload = encode_form_fields({"action": action, **token_field, **fields})
        logger.debug(f"[API] {method} action={action} fields={sorted(k for k in payload if k != 'token')}")

        try:
            if method == "GET":
                response = await self._client.get("", params=payload, headers=headers,
                                                   timeout=timeout or httpx.USE_CLIENT_DEFAULT)
            else:
                response = await self._client.post("", data=payload, headers=headers,
                                                    timeout=timeout or httpx.USE_CLIENT_DEFAULT)
        except httpx.TimeoutException:
            logger.warning(f"[API] {action} timed out")
            raise ServiceError("The parking service did not respond in time. Please try again.", "TIMEOUT")
        except httpx.HTTPError as e:
            logger.warning(f"[API] {action} transport error: {e}")
            raise ServiceError(NETWORK_ERROR, "NETWORK_ERROR")

        if response.status_code >= 500:
            logger.error(f"[API] {action} → HTTP {response.status_code}")
            raise ServiceError("Server error. Please try again later.", f"HTTP_{response.status_code}")

        envelope = self._parse_envelope(action, response.content)
        if response.status_code >= 400 or envelope.get("success") is False:
            exc = _error_from_envelope(envelope, response.status_code, rejection)
            logger.info(f"[API] {action} rejected: {exc.code} {exc.message}")
            raise exc
        return envelope.get("data")

    @staticmethod
    def _parse_envelope(action: str, raw_body: bytes) -> dict:
        if not raw_body.strip():
            return {}
        envelope = safe_parse_json(raw_body)
        if envelope is None:
            if is_html_body(raw_body):
                raise ServiceError("API returned HTML instead of JSON. Please check PARKING_API_BASE_URL.",
                                   "INVALID_RESPONSE")
            logger.warning(f"[API] {action} returned non-JSON body: {raw_body[:200]!r}")
            raise ServiceError("Invalid response format", "INVALID_RESPONSE")
        if not isinstance(envelope, dict):
            return {"success": True, "data": envelope}
        return envelope

    async def _post(self, action: str, fields: Optional[dict] = None, auth_required: bool = True, **kw):
        return await self._send("POST", action, fields or {}, auth_required, **kw)

    async def _get(self, action: str, params: Optional[dict] = None, auth_required: bool = True, **kw):
        return await self._send("GET", action, params or {}, auth_required, **kw)

    # ── Accounts ──────────────────────────────────────────────────────────
    async def login(self, email: str, password: str) -> dict:
        data = await self._post(Action.LOGIN, {"email": email, "password": password}, auth_required=False)
        data = data or {}
        token = data.get("token")
        if not token:
            raise ServiceError("Login successful but no token received from server", "NO_TOKEN")
        self.token = token
        logger.info(f"[API] Logged in as {email}")
        return data

    async def logout(self):
        try:
            if self.token:
                await self._post(Action.LOGOUT)
        except ServiceError as e:
            logger.warning(f"[API] Logout failed, dropping token anyway: {e.message}")
        finally:
            self.token = None

    async def change_password(self, current_password: str, new_password: str):
        return await self._post(Action.CHANGE_PASSWORD, {
            "current_password": current_password,
            "new_password": new_password,
        })

    # ── OTP ───────────────────────────────────────────────────────────────
    async def send_otp(self, mobile_number: str, purpose: OtpPurpose, vehicle_id: Optional[str] = None) -> dict:
        data = await self._post(Action.SEND_OTP, {
            "mobile_number": mobile_number,
            "purpose": OtpPurpose(purpose).value,
            "vehicle_id": vehicle_id,
        }, auth_required=False)
        return data or {}

    async def verify_otp(self, mobile_number: str, otp_code: str, purpose: OtpPurpose) -> bool:
        await self._post(Action.VERIFY_OTP, {
            "mobile_number": mobile_number,
            "otp_code": otp_code,
            "purpose": OtpPurpose(purpose).value,
        }, auth_required=False, rejection=InvalidCodeError)
        return True

    # ── Vehicles ──────────────────────────────────────────────────────────
    async def list_vehicles(self, filters: Union[VehicleFilters, dict, None] = None) -> list[VehicleRecord]:
        if isinstance(filters, dict):
            filters = VehicleFilters(**filters)
        params = filters.to_params() if filters else {}
        data = await self._get(Action.LIST_VEHICLES, params, auth_required=False)
        return [VehicleRecord.model_validate(v) for v in (data or [])]

    async def get_vehicle(self, vehicle_id: str) -> VehicleRecord:
        data = await self._get(Action.GET_VEHICLE, {"id": vehicle_id}, auth_required=False)
        if not data:
            raise ServiceError("The requested resource was not found.", "NOT_FOUND")
        return VehicleRecord.model_validate(data)

    async def update_vehicle(self, vehicle_id: str, changes: dict):
        return await self._post(Action.UPDATE_VEHICLE, {"id": vehicle_id, **changes})

    async def get_customer_history(self, mobile_number: str) -> list[VehicleRecord]:
        data = await self._get(Action.GET_CUSTOMER_HISTORY, {"mobile_number": mobile_number})
        return [VehicleRecord.model_validate(v) for v in (data or [])]

    async def generate_token_number(self) -> str:
        data = await self._post(Action.GENERATE_TOKEN_NUMBER)
        token_number = data.get("token_number") if isinstance(data, dict) else data
        if not token_number:
            raise ServiceError("No token number returned", "INVALID_RESPONSE")
        return str(token_number)

    async def discharge_vehicles(self, vehicle_ids: list[str], verification_method: str,
                                 discharge_image_url: Optional[str] = None,
                                 allow_duplicate: bool = False) -> BulkSubmissionResult:
        data = await self._post(Action.DISCHARGE_VEHICLE, {
            "id": list(vehicle_ids),
            "verification_method": verification_method,
            "discharge_image_url": discharge_image_url or "",
            "allow_duplicate": True if allow_duplicate else None,
        })
        data = data or {}
        count = data.get("dischargedCount") or data.get("count") or len(vehicle_ids)
        return BulkSubmissionResult(count=int(count), vehicle_ids=list(vehicle_ids),
                                    message=data.get("message"))

    async def register_vehicle(self, registration: VehicleRegistration, verification_method: str,
                               allow_duplicate: bool = False) -> BulkSubmissionResult:
        data = await self._post(Action.REGISTER_VEHICLE, {
            **registration.to_form(),
            "verification_method": verification_method,
            "allow_duplicate": True if allow_duplicate else None,
        })
        data = data or {}
        ids = data.get("ids") or ([data["id"]] if data.get("id") else [])
        count = data.get("count") or len(registration.vehicle_numbers)
        return BulkSubmissionResult(count=int(count), vehicle_ids=[str(i) for i in ids],
                                    token_number=data.get("token_number") or registration.token_number,
                                    message=data.get("message"))

    # ── Dashboard ─────────────────────────────────────────────────────────
    async def get_dashboard_stats(self, params: Optional[dict] = None) -> dict:
        return await self._get(Action.GET_DASHBOARD_STATS, params) or {}

    async def export_data(self, from_date: Optional[str] = None, to_date: Optional[str] = None):
        return await self._post(Action.EXPORT_DATA, {"from_date": from_date, "to_date": to_date})

    # ── Employees ─────────────────────────────────────────────────────────
    async def list_employees(self) -> list[dict]:
        return await self._get(Action.LIST_EMPLOYEES) or []

    async def get_employee(self, employee_id: str) -> dict:
        return await self._get(Action.GET_EMPLOYEE, {"id": employee_id})

    async def create_employee(self, employee: dict):
        return await self._post(Action.CREATE_EMPLOYEE, employee)

    async def update_employee(self, employee_id: str, changes: dict):
        return await self._post(Action.UPDATE_EMPLOYEE, {"id": employee_id, **changes})

    async def delete_employee(self, employee_id: str):
        return await self._post(Action.DELETE_EMPLOYEE, {"id": employee_id})

    # ── Companies ─────────────────────────────────────────────────────────
    async def register_company(self, company: dict):
        """Public sign-up: creates the company and its admin employee."""
        return await self._post(Action.REGISTER_COMPANY, company, auth_required=False)

    async def list_companies(self) -> list[dict]:
        return await self._get(Action.LIST_COMPANIES) or []

    async def get_company(self, company_id: str) -> dict:
        return await self._get(Action.GET_COMPANY, {"id": company_id})

    async def create_company(self, company: dict):
        return await self._post(Action.CREATE_COMPANY, company)

    async def update_company(self, company_id: str, changes: dict):
        return await self._post(Action.UPDATE_COMPANY, {"id": company_id, **changes})

    async def delete_company(self, company_id: str):
        return await self._post(Action.DELETE_COMPANY, {"id": company_id})
