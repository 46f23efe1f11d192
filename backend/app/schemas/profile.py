from pydantic import BaseModel, Field
from typing import Optional, List


class ProfileResponse(BaseModel):
    username: str
    display_name: Optional[str] = None
    institutional_email: str
    backup_email: Optional[str] = None
    employee_id: Optional[str] = None
    title: Optional[str] = None
    user_type: str
    two_factor_enabled: bool
    has_pin: bool
    device_count: int
    groups: List[str] = []


class DualStatusRequest(BaseModel):
    national_id: str = Field(..., pattern=r'^\d{11}$')


class DualStatusResponse(BaseModel):
    national_id: str
    is_employee: bool
    is_student: bool
    is_dual: bool
    employee_name: Optional[str] = None
    department: Optional[str] = None
    student_status: Optional[str] = None
    career: Optional[str] = None
