from pydantic import BaseModel, Field


class PinSave(BaseModel):
    pin: str = Field(..., pattern=r'^\d{6}$', description="6-digit PIN")
    # Re-confirm ownership before changing a recovery factor
    password: str


class PinCheck(BaseModel):
    pin: str = Field(..., pattern=r'^\d{6}$')


class PinRemove(BaseModel):
    password: str


class UserHasPinRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=255)


class PinStatus(BaseModel):
    has_pin: bool


class PinCheckResult(BaseModel):
    valid: bool
