"""
Request/response models for the password recovery wizard.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class IdentifyRequest(BaseModel):
    # Username, national id or email address
    identifier: str = Field(..., min_length=1, max_length=255)


class VerifyRequest(BaseModel):
    session_id: str
    # Email code, PIN or TOTP code depending on the channel
    code: str = Field(..., min_length=4, max_length=12)


class ResetRequest(BaseModel):
    session_id: str
    new_password: str = Field(..., min_length=1, max_length=256)


class SessionRequest(BaseModel):
    session_id: str


class RecoveryStatus(BaseModel):
    session_id: str
    channel: str
    state: str
    username: str
    expires_at: datetime
    # Masked destination for email codes, e.g. "j***@gmail.com"
    sent_to: Optional[str] = None
    message: Optional[str] = None


class ResetResult(RecoveryStatus):
    directory_synced: bool
    redirect_to: str
    redirect_after_seconds: int
