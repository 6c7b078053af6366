from __future__ import annotations

import os
import sys
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from semillero.api import auth, classroom, coordinators, health, students, teachers
from semillero.config import settings
from semillero.db import init_db
from semillero.errors import install_error_handlers

logger.remove()
logger.add(sys.stderr, level=settings.log_level)
os.makedirs(settings.log_dir, exist_ok=True)
logger.add(os.path.join(settings.log_dir, "app.log"), level=settings.log_level, rotation="10 MB", retention=5)

app = FastAPI(title=settings.project_name, version="0.1.0")


@app.on_event("startup")
def startup() -> None:
    logger.bind(tag="startup.init").info(f"starting {settings.project_name} env={settings.environment}")
    init_db()


origins = sorted({settings.frontend_url.rstrip("/"), *settings.cors_origins})
logger.bind(tag="startup.cors").info(f"CORS allow_origins={origins}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.bind(tag="http.access").info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
    )
    return response


install_error_handlers(app)

app.include_router(health.router, prefix="/health")
app.include_router(auth.callback_router, prefix="/auth")
app.include_router(auth.callback_router, prefix="/api/auth")
app.include_router(auth.router, prefix="/api/auth")
app.include_router(classroom.router, prefix="/api/classroom")
app.include_router(students.router, prefix="/api/students")
app.include_router(teachers.router, prefix="/api/teachers")
app.include_router(coordinators.router, prefix="/api/coordinators")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
