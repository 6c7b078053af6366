from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from ..db import Base
from ..util.dates import isoformat, utcnow

ROLES = ("student", "teacher", "coordinator", "admin")
AUTH_METHODS = ("google", "local", "both")


def default_preferences() -> dict:
    return {
        "notifications": {"email": True, "push": True},
        "language": "es",
        "timezone": "America/Argentina/Buenos_Aires",
    }


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # NULL google_id is allowed on any number of rows, so local-only accounts coexist.
    google_id = Column(String(255), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)
    auth_method = Column(String(16), nullable=False, default="local")

    name = Column(String(255), nullable=False)
    picture = Column(Text, nullable=False, default="")
    role = Column(String(32), nullable=False, default="student", index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True, default=utcnow)

    google_access_token = Column(Text, nullable=True)
    google_refresh_token = Column(Text, nullable=True)
    google_token_expiry = Column(DateTime, nullable=True)

    preferences = Column(JSON, nullable=False, default=default_preferences)

    cohort = Column(String(120), nullable=True, index=True)
    enrollment_date = Column(DateTime, nullable=True)
    graduation_date = Column(DateTime, nullable=True)
    specialization = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def is_token_expired(self) -> bool:
        if not self.google_token_expiry:
            return True
        return utcnow() >= self.google_token_expiry

    def metadata_dict(self) -> dict:
        return {
            "cohort": self.cohort,
            "enrollmentDate": isoformat(self.enrollment_date),
            "graduationDate": isoformat(self.graduation_date),
            "specialization": self.specialization,
        }

    def public_profile(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture or "",
            "role": self.role,
            "authMethod": self.auth_method,
            "isActive": bool(self.is_active),
            "lastLogin": isoformat(self.last_login),
            "metadata": self.metadata_dict(),
            "preferences": self.preferences or default_preferences(),
        }
