from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime


class LogOut(BaseModel):
    id: int
    ts: Optional[datetime] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[int] = None
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class LogPage(BaseModel):
    items: List[LogOut]
    total: int
    page: int
    page_size: int
