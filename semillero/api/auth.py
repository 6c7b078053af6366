from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import INTERNAL_ERROR, api_error
from ..models.user import User
from ..schemas.auth import GoogleCodeRequest, LoginRequest, ProfileUpdate, RegisterRequest
from ..security import create_access_token, get_current_user, hash_password, verify_password
from ..services.google_oauth import GoogleOAuth, GoogleOAuthError, get_google_oauth, token_expiry
from ..services.users import ProfileError, apply_preferences, normalize_email, upsert_google_user
from ..util.dates import isoformat, utcnow

router = APIRouter(tags=["auth"])
# Google redirects the browser here; mounted both at /auth and /api/auth.
callback_router = APIRouter(tags=["auth"])

INVALID_CREDENTIALS = "Credenciales inválidas"


def _session_payload(user: User) -> Dict[str, Any]:
    return {"token": create_access_token(user), "user": user.public_profile()}


def _store_refreshed_token(db: Session, user: User, token: Dict[str, Any]) -> User:
    user.google_access_token = token["access_token"]
    user.google_token_expiry = token_expiry(token)
    if token.get("refresh_token"):
        user.google_refresh_token = token["refresh_token"]
    db.commit()
    db.refresh(user)
    return user


def _frontend_login_url(**params: str) -> str:
    query = "&".join(f"{key}={quote(value, safe='')}" for key, value in params.items())
    return f"{settings.frontend_url.rstrip('/')}/login?{query}"


@router.get("/google")
async def google_auth_url(oauth: GoogleOAuth = Depends(get_google_oauth)) -> Dict[str, str]:
    try:
        url = await oauth.authorization_url()
    except GoogleOAuthError as exc:
        logger.bind(tag="auth.google").error(f"cannot build consent url: {exc}")
        raise api_error(500, INTERNAL_ERROR, "No se pudo generar la URL de autorización")
    return {"authUrl": url}


@callback_router.get("/google/callback")
def google_redirect(code: Optional[str] = None, error: Optional[str] = None) -> RedirectResponse:
    if error:
        return RedirectResponse(_frontend_login_url(error=error))
    if not code:
        return RedirectResponse(_frontend_login_url(error="no_code"))
    return RedirectResponse(_frontend_login_url(code=code))


@router.post("/google/callback")
async def google_callback(
    body: GoogleCodeRequest,
    db: Session = Depends(get_db),
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> Dict[str, Any]:
    if not body.code:
        raise api_error(400, "Código de autorización requerido")
    try:
        token = await oauth.exchange_code(body.code)
        profile = await oauth.fetch_profile(token)
    except GoogleOAuthError as exc:
        raise api_error(
            401,
            "Error de autenticación con Google",
            "No se pudo completar la autenticación",
            requiresReauth=True,
        ) from exc

    try:
        user = await run_in_threadpool(upsert_google_user, db, profile, token, settings)
    except ProfileError as exc:
        raise api_error(400, "Perfil de Google incompleto", str(exc)) from exc

    if not user.is_active:
        raise api_error(401, "Cuenta desactivada", "Tu cuenta ha sido desactivada")
    logger.bind(tag="auth.google", user=user.id).info("google login")
    return _session_payload(user)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    email = normalize_email(body.email)
    if db.query(User).filter(User.email == email).first():
        raise api_error(400, "El usuario ya existe", "Ya existe una cuenta con este email")

    user = User(
        email=email,
        password_hash=hash_password(body.password),
        auth_method="local",
        name=body.name,
        role=body.role,
        last_login=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise api_error(400, "El usuario ya existe", "Ya existe una cuenta con este email")
    db.refresh(user)
    logger.bind(tag="auth.local", user=user.id).info(f"registered with role {user.role}")
    return _session_payload(user)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = db.query(User).filter(User.email == normalize_email(body.email)).first()
    if user is None:
        raise api_error(401, INVALID_CREDENTIALS, "Email o contraseña incorrectos")
    if not user.password_hash:
        raise api_error(
            401,
            "Cuenta sin contraseña",
            "Esta cuenta fue creada con Google, inicia sesión con Google",
        )
    if not verify_password(body.password, user.password_hash):
        raise api_error(401, INVALID_CREDENTIALS, "Email o contraseña incorrectos")
    if not user.is_active:
        raise api_error(401, "Cuenta desactivada", "Tu cuenta ha sido desactivada")

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return _session_payload(user)


@router.get("/me")
def read_me(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return user.public_profile()


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    if body.name is not None:
        user.name = body.name
    if body.picture is not None:
        user.picture = body.picture
    if body.preferences is not None:
        apply_preferences(user, body.preferences)
    db.commit()
    db.refresh(user)
    return {"message": "Perfil actualizado correctamente", "user": user.public_profile()}


@router.post("/refresh")
async def refresh_google_token(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> Dict[str, Any]:
    if not user.google_refresh_token:
        raise api_error(
            401,
            "Token de actualización no disponible",
            "Debes reautenticarte con Google",
            requiresReauth=True,
        )
    try:
        token = await oauth.refresh(user.google_refresh_token)
    except GoogleOAuthError as exc:
        raise api_error(
            401,
            "No se pudo refrescar el token",
            "Debes reautenticarte con Google",
            requiresReauth=True,
        ) from exc

    user = await run_in_threadpool(_store_refreshed_token, db, user, token)
    return {"message": "Token actualizado correctamente", "expiryDate": isoformat(user.google_token_expiry)}


@router.post("/logout")
def logout(user: User = Depends(get_current_user)) -> Dict[str, str]:
    logger.bind(tag="auth.session", user=user.id).info("logout")
    return {"message": "Sesión cerrada correctamente"}
