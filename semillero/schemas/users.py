from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationPreferences(BaseModel):
    email: Optional[bool] = None
    push: Optional[bool] = None


class PreferencesIn(BaseModel):
    notifications: Optional[NotificationPreferences] = None
    language: Optional[str] = Field(default=None, max_length=10)
    timezone: Optional[str] = Field(default=None, max_length=64)


class MetadataIn(BaseModel):
    cohort: Optional[str] = Field(default=None, max_length=120)
    enrollmentDate: Optional[datetime] = None
    graduationDate: Optional[datetime] = None
    specialization: Optional[str] = Field(default=None, max_length=255)


class StudentUpdate(BaseModel):
    preferences: Optional[PreferencesIn] = None
    metadata: Optional[MetadataIn] = None


class RoleUpdate(BaseModel):
    role: str


class StatusUpdate(BaseModel):
    isActive: bool


ASSIGNABLE_ROLES = ("student", "teacher", "coordinator")
