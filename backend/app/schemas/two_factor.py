from pydantic import BaseModel, Field
from typing import List


class TwoFactorSetup(BaseModel):
    secret: str
    otpauth_url: str
    backup_codes: List[str]


class TwoFactorActivate(BaseModel):
    code: str = Field(..., pattern=r'^\d{6}$')


class TwoFactorDeactivate(BaseModel):
    password: str


class TwoFactorStatus(BaseModel):
    username: str
    enabled: bool
