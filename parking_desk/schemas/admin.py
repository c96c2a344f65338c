# parking_desk/schemas/admin.py
from pydantic import BaseModel
from typing import Optional


class EmployeeIn(BaseModel):
    name: str
    email: str
    role: str = "employee"      # admin | employee
    mobile_number: Optional[str] = None
    timezone: Optional[str] = None
    password: Optional[str] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    mobile_number: Optional[str] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None


class CompanyIn(BaseModel):
    company_name: str
    admin_name: str
    admin_email: str
    admin_password: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = None


class CompanyUpdate(BaseModel):
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class LoginIn(BaseModel):
    email: str
    password: str
