from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Fields required to create or replace a location
class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=1, max_length=500)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)

    @field_validator("name", "address")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field is required")
        return v.strip()


class LocationUpdate(LocationCreate):
    pass


class LocationOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    address: str
    latitude: float
    longitude: float
    category: Optional[str] = None
    is_active: bool
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
