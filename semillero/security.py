from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .errors import api_error
from .models.user import User

bearer_scheme = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt_sha256"], deprecated="auto")

JWT_ALGORITHM = "HS256"
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([dhms]?)\s*$")
_DURATION_UNITS = {"d": 86400, "h": 3600, "m": 60, "s": 1, "": 1}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def parse_duration(value: str, default_seconds: int = 7 * 86400) -> int:
    """'7d', '12h', '30m', '45s' or plain seconds."""
    match = _DURATION_RE.match(value or "")
    if not match:
        return default_seconds
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def create_access_token(user: User, expires_seconds: int | None = None) -> str:
    if expires_seconds is None:
        expires_seconds = parse_duration(settings.jwt_expire)
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(seconds=expires_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise api_error(401, "Acceso denegado", "No se proporcionó token de autorización")
    try:
        claims = decode_access_token(credentials.credentials)
        user_id = int(claims["sub"])
    except jwt.ExpiredSignatureError:
        raise api_error(401, "Token expirado", "El token ha expirado, por favor inicia sesión nuevamente")
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        raise api_error(401, "Token inválido", "El token proporcionado no es válido")

    user = db.get(User, user_id)
    if user is None:
        raise api_error(401, "Token inválido", "Usuario no encontrado")
    if not user.is_active:
        raise api_error(401, "Cuenta desactivada", "Tu cuenta ha sido desactivada")

    request.state.token_claims = claims
    request.state.user = user
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    allowed = ", ".join(roles)

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.bind(tag="auth.role", user=user.id).info(f"role {user.role} rejected (allowed: {allowed})")
            raise api_error(403, "Permisos insuficientes", f"Se requiere uno de los siguientes roles: {allowed}")
        return user

    return dependency


def require_google_token(user: User = Depends(get_current_user)) -> User:
    if not user.google_access_token:
        raise api_error(
            400,
            "Google OAuth requerido",
            "Para acceder a Google Classroom, debes autenticarte con Google OAuth",
            requiresGoogleAuth=True,
        )
    if user.is_token_expired():
        raise api_error(
            401,
            "Token de Google expirado",
            "Tu sesión con Google ha expirado, por favor reautentícate",
            requiresReauth=True,
        )
    return user
