from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional


class AccountActivate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    employee_id: str = Field(..., pattern=r'^\d{11}$', description="11-digit national id")
    backup_email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.strip().lower()


class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=1, max_length=256)


class BackupEmailUpdate(BaseModel):
    backup_email: EmailStr


class PasswordChangeResult(BaseModel):
    success: bool = True
    directory_synced: bool
    message: str


class ActivationResult(PasswordChangeResult):
    username: str
    institutional_email: str


class SyncSummary(BaseModel):
    processed: int
    synced: int
    failed: int
    message: Optional[str] = None
