# parking_desk/routers/admin.py
"""Accounts, employees and companies, passed through to the remote API."""

from fastapi import APIRouter, Depends

from parking_desk.dependencies import get_api
from parking_desk.schemas.admin import (
    CompanyIn, CompanyUpdate, EmployeeIn, EmployeeUpdate, LoginIn, PasswordChange,
)

router = APIRouter()


# ── Accounts ─────────────────────────────────────────────────────────────────
@router.post("/auth/login", summary="Sign the console in to the parking API")
async def login(body: LoginIn, api=Depends(get_api)):
    user = await api.login(body.email, body.password)
    return {"status": "logged_in", "user": user.get("user")}


@router.post("/auth/logout")
async def logout(api=Depends(get_api)):
    await api.logout()
    return {"status": "logged_out"}


@router.post("/auth/password")
async def change_password(body: PasswordChange, api=Depends(get_api)):
    await api.change_password(body.current_password, body.new_password)
    return {"status": "password_changed"}


# ── Employees ────────────────────────────────────────────────────────────────
@router.get("/employees")
async def list_employees(api=Depends(get_api)):
    return await api.list_employees()


@router.get("/employees/{employee_id}")
async def get_employee(employee_id: str, api=Depends(get_api)):
    return await api.get_employee(employee_id)


@router.post("/employees", status_code=201)
async def create_employee(body: EmployeeIn, api=Depends(get_api)):
    return await api.create_employee(body.model_dump(exclude_none=True))


@router.patch("/employees/{employee_id}")
async def update_employee(employee_id: str, body: EmployeeUpdate, api=Depends(get_api)):
    await api.update_employee(employee_id, body.model_dump(exclude_none=True))
    return {"status": "updated", "id": employee_id}


@router.delete("/employees/{employee_id}")
async def delete_employee(employee_id: str, api=Depends(get_api)):
    await api.delete_employee(employee_id)
    return {"status": "removed", "id": employee_id}


# ── Companies ────────────────────────────────────────────────────────────────
@router.post("/companies/register", status_code=201, summary="Public company sign-up")
async def register_company(body: CompanyIn, api=Depends(get_api)):
    return await api.register_company(body.model_dump(exclude_none=True))


@router.get("/companies")
async def list_companies(api=Depends(get_api)):
    return await api.list_companies()


@router.get("/companies/{company_id}")
async def get_company(company_id: str, api=Depends(get_api)):
    return await api.get_company(company_id)


@router.post("/companies", status_code=201)
async def create_company(body: CompanyIn, api=Depends(get_api)):
    return await api.create_company(body.model_dump(exclude_none=True))


@router.patch("/companies/{company_id}")
async def update_company(company_id: str, body: CompanyUpdate, api=Depends(get_api)):
    await api.update_company(company_id, body.model_dump(exclude_none=True))
    return {"status": "updated", "id": company_id}


@router.delete("/companies/{company_id}")
async def delete_company(company_id: str, api=Depends(get_api)):
    await api.delete_company(company_id)
    return {"status": "removed", "id": company_id}
