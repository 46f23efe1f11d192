from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class AuditLogResponse(BaseModel):
    id: str
    username: Optional[str] = None
    action: str
    result: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogsResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
