from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    project_name: str = os.getenv("PROJECT_NAME", "Semillero Digital API")
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./semillero.db")
    sqlite_dir: str = os.getenv("SQLITE_DIR", "./data")

    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expire: str = os.getenv("JWT_EXPIRE", "7d")

    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", ""))

    google_client_id: str = os.getenv("GOOGLE_CLIENT_ID", "")
    google_client_secret: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    google_redirect_uri: str = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:5000/auth/google/callback")

    # Role escalation for first-time Google logins, checked against the email domain.
    coordinator_domains: List[str] = field(
        default_factory=lambda: _env_list("COORDINATOR_DOMAINS", "semillerodigital.org")
    )
    coordinator_domain_markers: List[str] = field(
        default_factory=lambda: _env_list("COORDINATOR_DOMAIN_MARKERS", "coordinador.")
    )
    teacher_domain_markers: List[str] = field(
        default_factory=lambda: _env_list("TEACHER_DOMAIN_MARKERS", "profesor.,teacher.")
    )

    log_dir: str = os.getenv("LOG_DIR", "./data/logs")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
