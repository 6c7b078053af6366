from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from .users import PreferencesIn

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: Name
    role: Literal["student", "teacher", "coordinator"] = "student"


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class GoogleCodeRequest(BaseModel):
    code: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[Name] = None
    picture: Optional[str] = Field(default=None, max_length=2048)
    preferences: Optional[PreferencesIn] = None
