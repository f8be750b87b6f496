from __future__ import annotations
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str | None = Field(default=None, max_length=120)

class LoginRequest(BaseModel):
    username: str
    password: str

class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=120)
    email: EmailStr | None = None

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    email: str | None = None
    name: str | None = None
    submission_count: int = 0
    is_staff: bool = False

class UserPublic(BaseModel):
    id: int
    username: str
    email: EmailStr | None = None
    name: str | None = None
    submission_count: int
    is_staff: bool
    created_at: datetime

class TokenPair(BaseModel):
    access: str
    refresh: str
