"""Create demo local accounts.

Usage: python -m semillero.seed
Existing emails are left untouched.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from loguru import logger
from sqlalchemy.orm import Session

from semillero.db import SessionLocal, init_db
from semillero.models.user import User
from semillero.security import hash_password
from semillero.util.dates import utcnow

SEED_USERS: List[Dict] = [
    {
        "email": "admin@semillero.dev",
        "password": "admin123",
        "name": "Administrador Semillero",
        "role": "admin",
        "cohort": "Admin",
        "enrollment_date": datetime(2024, 1, 1),
        "specialization": "Administración",
    },
    {
        "email": "coordinador@semillero.dev",
        "password": "coord123",
        "name": "María Coordinadora",
        "role": "coordinator",
        "cohort": "Staff-2024",
        "enrollment_date": datetime(2024, 1, 15),
        "specialization": "Coordinación Académica",
    },
    {
        "email": "profesor@semillero.dev",
        "password": "prof123",
        "name": "Carlos Profesor",
        "role": "teacher",
        "cohort": "Docentes-2024",
        "enrollment_date": datetime(2024, 2, 1),
        "specialization": "Desarrollo Web",
    },
    {
        "email": "estudiante1@semillero.dev",
        "password": "est123",
        "name": "Ana Estudiante",
        "role": "student",
        "cohort": "Cohorte-2024-A",
        "enrollment_date": datetime(2024, 3, 1),
        "specialization": "Frontend Development",
    },
    {
        "email": "estudiante2@semillero.dev",
        "password": "est123",
        "name": "Luis Estudiante",
        "role": "student",
        "cohort": "Cohorte-2024-A",
        "enrollment_date": datetime(2024, 3, 1),
        "specialization": "Backend Development",
    },
    {
        "email": "test@semillero.dev",
        "password": "test123",
        "name": "Usuario Test",
        "role": "student",
        "cohort": "Test-2024",
        "enrollment_date": None,
        "specialization": "Testing",
    },
]


def seed_users(db: Session, entries: List[Dict] = SEED_USERS) -> List[User]:
    created: List[User] = []
    for entry in entries:
        if db.query(User).filter(User.email == entry["email"]).first():
            logger.bind(tag="seed").info(f"{entry['email']} already exists, skipping")
            continue
        user = User(
            email=entry["email"],
            password_hash=hash_password(entry["password"]),
            auth_method="local",
            name=entry["name"],
            role=entry["role"],
            cohort=entry["cohort"],
            enrollment_date=entry["enrollment_date"] or utcnow(),
            specialization=entry["specialization"],
        )
        db.add(user)
        created.append(user)
    db.commit()
    return created


def main() -> None:
    init_db()
    db = SessionLocal()
    try:
        created = seed_users(db)
    finally:
        db.close()
    print(f"[seed] created={len(created)}")
    print(f"{'Email':<28} {'Password':<12} {'Rol':<12}")
    for entry in SEED_USERS:
        print(f"{entry['email']:<28} {entry['password']:<12} {entry['role']:<12}")


if __name__ == "__main__":
    main()
