from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class UserLogin(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    id: str
    username: str
    institutional_email: str
    backup_email: Optional[str] = None
    display_name: Optional[str] = None
    employee_id: Optional[str] = None
    title: Optional[str] = None
    two_factor_enabled: bool
    has_pin: bool
    ldap_synced: bool
    last_password_update: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(Token):
    user: UserResponse
