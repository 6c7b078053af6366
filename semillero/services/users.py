from __future__ import annotations

from typing import Any, Dict

from loguru import logger
from sqlalchemy.orm import Session

from ..config import Settings
from ..models.user import User, default_preferences
from ..util.dates import to_naive_utc, utcnow
from .google_oauth import token_expiry


class ProfileError(ValueError):
    """Raised when a Google profile lacks the fields needed to identify a user."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def role_for_email(email: str, config: Settings) -> str:
    domain = normalize_email(email).rpartition("@")[2]
    for allowed in config.coordinator_domains:
        if domain == allowed or domain.endswith("." + allowed):
            return "coordinator"
    if any(domain.startswith(marker) for marker in config.coordinator_domain_markers):
        return "coordinator"
    if any(domain.startswith(marker) for marker in config.teacher_domain_markers):
        return "teacher"
    return "student"


def find_user_for_google(db: Session, google_id: str, email: str) -> User | None:
    # A google_id match takes precedence over an email match.
    user = db.query(User).filter(User.google_id == google_id).first()
    if user is None:
        user = db.query(User).filter(User.email == email).first()
    return user


def upsert_google_user(db: Session, profile: Dict[str, Any], token: Dict[str, Any], config: Settings) -> User:
    google_id = profile.get("id") or profile.get("sub")
    email_raw = profile.get("email")
    if not google_id or not email_raw:
        raise ProfileError("El perfil de Google no contiene id o email")
    email = normalize_email(email_raw)
    name = (profile.get("name") or email.split("@")[0]).strip()
    picture = profile.get("picture") or ""

    user = find_user_for_google(db, str(google_id), email)
    if user is None:
        user = User(
            email=email,
            google_id=str(google_id),
            auth_method="google",
            name=name,
            picture=picture,
            role=role_for_email(email, config),
        )
        db.add(user)
        logger.bind(tag="auth.google", email=email).info(f"creating user with role {user.role}")
    else:
        if user.google_id and user.google_id != str(google_id):
            logger.bind(tag="auth.google", user=user.id).warning("email matched a user linked to another Google id")
        user.google_id = str(google_id)
        user.name = name
        user.picture = picture
        if user.auth_method == "local":
            user.auth_method = "both"

    user.google_access_token = token.get("access_token")
    user.google_refresh_token = token.get("refresh_token") or user.google_refresh_token
    user.google_token_expiry = token_expiry(token)
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return user


def apply_preferences(user: User, prefs) -> None:
    current = dict(user.preferences or default_preferences())
    incoming = prefs.model_dump(exclude_none=True)
    if "notifications" in incoming:
        notifications = dict(current.get("notifications") or {})
        notifications.update(incoming.pop("notifications"))
        current["notifications"] = notifications
    current.update(incoming)
    # Reassigned, not mutated, so the JSON column is flagged dirty.
    user.preferences = current


def apply_metadata(user: User, meta) -> None:
    incoming = meta.model_dump(exclude_unset=True)
    if "cohort" in incoming:
        user.cohort = incoming["cohort"]
    if "specialization" in incoming:
        user.specialization = incoming["specialization"]
    if "enrollmentDate" in incoming:
        user.enrollment_date = to_naive_utc(incoming["enrollmentDate"])
    if "graduationDate" in incoming:
        user.graduation_date = to_naive_utc(incoming["graduationDate"])
