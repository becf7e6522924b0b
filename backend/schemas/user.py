from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
import re

PASSWORD_SPECIAL_CHARS = "!@#$%^&*"


def check_password_strength(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain a digit")
    if not any(ch in PASSWORD_SPECIAL_CHARS for ch in value):
        raise ValueError(f"Password must contain one of {PASSWORD_SPECIAL_CHARS}")
    return value


# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str = Field(min_length=1)

# Schema for self-service registration
class UserRegister(UserBase):
    name: str = Field(min_length=2, max_length=255)
    password: str
    confirm_password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self

# Output schema for user details; never carries the password hash
class UserResponse(UserBase):
    id: int
    name: str
    is_admin: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# Schema for JWT authentication responses
class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class MessageResponse(BaseModel):
    message: str

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return check_password_strength(v)

# Self-service profile changes; email and password are honoured for admins only
class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)


# Admin user management
class AdminUserCreate(UserBase):
    name: str = Field(min_length=2, max_length=255)
    password: str = Field(min_length=6)
    is_admin: bool = False

class AdminUserUpdate(BaseModel):
    """Partial update - only the fields present in the request are written."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    is_admin: Optional[bool] = None

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class PaginatedUsersResponse(BaseModel):
    users: List[UserResponse]
    pagination: Pagination

class DeletedUserResponse(BaseModel):
    message: str
    id: int
    name: str
