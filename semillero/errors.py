from __future__ import annotations

import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

INTERNAL_ERROR = "Error interno del servidor"


def api_error(status_code: int, error: str, message: Optional[str] = None, **extra: Any) -> HTTPException:
    """HTTPException whose detail is rendered verbatim as the JSON body."""
    detail: Dict[str, Any] = {"error": error}
    if message:
        detail["message"] = message
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        body = detail
    elif exc.status_code == 404 and detail == "Not Found":
        body = {
            "error": "Ruta no encontrada",
            "message": f"No se pudo encontrar {request.url.path} en este servidor",
        }
    else:
        body = {"error": str(detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Datos inválidos", "message": "La solicitud contiene datos inválidos", "details": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.bind(tag="http.error", path=request.url.path).exception(f"unhandled error: {exc}")
    if settings.is_production:
        body: Dict[str, Any] = {"error": INTERNAL_ERROR}
    else:
        body = {
            "error": str(exc) or INTERNAL_ERROR,
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
    return JSONResponse(status_code=500, content=body)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
