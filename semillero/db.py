from __future__ import annotations

import os
from typing import Generator

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

connect_args = {}
database_url = settings.database_url
sqlite_dir = settings.sqlite_dir


def _ensure_dir(path: str) -> str:
    try:
        os.makedirs(path, exist_ok=True)
        return path
    except PermissionError:
        fallback = os.path.abspath("./semillero-data")
        os.makedirs(fallback, exist_ok=True)
        return fallback


if database_url.startswith("sqlite:///"):
    connect_args["check_same_thread"] = False
    path = database_url.replace("sqlite:///", "", 1)
    if not path.startswith("/"):
        path = os.path.join(_ensure_dir(sqlite_dir), path)
    database_url = f"sqlite:///{os.path.abspath(path)}"

engine = create_engine(database_url, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db() -> None:
    from .models import course, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.bind(tag="startup.db").info(f"database ready at {engine.url.render_as_string(hide_password=True)}")


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
