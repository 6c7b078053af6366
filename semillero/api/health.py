from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..util.dates import isoformat, utcnow

router = APIRouter(tags=["health"])


@router.get("")
def health() -> dict:
    return {
        "status": "OK",
        "message": "Semillero Digital API funcionando correctamente",
        "timestamp": isoformat(utcnow()),
        "environment": settings.environment,
    }


@router.get("/ready")
def ready(db: Session = Depends(get_db)) -> JSONResponse:
    """Readiness: the database answers a trivial query."""
    checks = []
    try:
        db.execute(text("SELECT 1"))
        checks.append({"name": "database", "ok": True, "issues": []})
    except SQLAlchemyError as exc:  # pragma: no cover
        checks.append({"name": "database", "ok": False, "issues": [str(exc)]})
    ok = all(c["ok"] for c in checks)
    return JSONResponse(status_code=200 if ok else 503, content={"ok": ok, "checks": checks})
