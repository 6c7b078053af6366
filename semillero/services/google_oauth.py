from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from loguru import logger

from ..config import Settings, settings
from ..util.dates import from_timestamp

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = [
    "https://www.googleapis.com/auth/classroom.courses.readonly",
    "https://www.googleapis.com/auth/classroom.rosters.readonly",
    "https://www.googleapis.com/auth/classroom.coursework.students.readonly",
    "https://www.googleapis.com/auth/classroom.coursework.me.readonly",
    "https://www.googleapis.com/auth/classroom.announcements.readonly",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


class GoogleOAuthError(RuntimeError):
    """Raised when Google refuses a code exchange, refresh or profile lookup."""


def token_expiry(token: Dict[str, Any]) -> Optional[datetime]:
    exp = token.get("expires_at")
    if isinstance(exp, (int, float)):
        return from_timestamp(exp)
    expires_in = token.get("expires_in")
    if isinstance(expires_in, (int, float)):
        return from_timestamp(time.time() + expires_in)
    return None


class GoogleOAuth:
    """Google OAuth 2.0 operations.

    Every call builds its own ``AsyncOAuth2Client`` so tokens from one
    request are never visible to another.
    """

    def __init__(self, config: Settings):
        self.config = config

    def _client(self, token: Optional[Dict[str, Any]] = None) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.config.google_client_id or None,
            client_secret=self.config.google_client_secret or None,
            scope=" ".join(SCOPES),
            redirect_uri=self.config.google_redirect_uri,
            token=token,
            timeout=20.0,
        )

    async def authorization_url(self) -> str:
        if not self.config.google_client_id:
            raise GoogleOAuthError("GOOGLE_CLIENT_ID is not configured")
        async with self._client() as client:
            url, _state = client.create_authorization_url(
                GOOGLE_AUTH_URL,
                access_type="offline",
                prompt="consent",
            )
        return url

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                token = await client.fetch_token(GOOGLE_TOKEN_URL, code=code, grant_type="authorization_code")
        except (OAuthError, httpx.HTTPError) as exc:
            logger.bind(tag="google.oauth").warning(f"code exchange failed: {exc}")
            raise GoogleOAuthError(f"Error obteniendo tokens: {exc}") from exc
        return dict(token)

    async def fetch_profile(self, token: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with self._client(token=token) as client:
                resp = await client.get(GOOGLE_USERINFO_URL)
                resp.raise_for_status()
                profile = resp.json()
        except (OAuthError, httpx.HTTPError) as exc:
            logger.bind(tag="google.oauth").warning(f"userinfo failed: {exc}")
            raise GoogleOAuthError(f"Error obteniendo información del usuario: {exc}") from exc
        if not isinstance(profile, dict):
            raise GoogleOAuthError("Respuesta de perfil inválida")
        return profile

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                token = await client.refresh_token(GOOGLE_TOKEN_URL, refresh_token=refresh_token)
        except (OAuthError, httpx.HTTPError) as exc:
            logger.bind(tag="google.oauth").warning(f"token refresh failed: {exc}")
            raise GoogleOAuthError(f"Error refrescando token: {exc}") from exc
        token = dict(token)
        if not token.get("access_token"):
            raise GoogleOAuthError("Respuesta de token inválida")
        return token


def get_google_oauth() -> GoogleOAuth:
    return GoogleOAuth(settings)
