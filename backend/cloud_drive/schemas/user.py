"""User and auth request/response schemas."""
import re
import uuid
from typing import Optional
from datetime import datetime
from pydantic import Field, field_validator
from cloud_drive.schemas.base import CamelModel, CamelORMModel

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: str
    password: str = Field(..., min_length=6)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserResponse(CamelORMModel):
    id: uuid.UUID
    name: str
    email: str
    avatar: str = ""
    role: str = "user"
    auth_provider: str = "local"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
