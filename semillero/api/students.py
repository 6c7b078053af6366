from __future__ import annotations

import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import api_error
from ..models.user import User
from ..schemas.users import StudentUpdate
from ..security import get_current_user, require_roles
from ..services.users import apply_metadata, apply_preferences

router = APIRouter(tags=["students"])


def _ensure_self_or_staff(user: User, target_id: int, action: str) -> None:
    if user.role == "student" and user.id != target_id:
        raise api_error(403, "Permisos insuficientes", f"Solo puedes {action} tu propia información")


@router.get("")
def list_students(
    cohort: Optional[str] = None,
    program: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    _user: User = Depends(require_roles("teacher", "coordinator", "admin")),
) -> Dict[str, Any]:
    query = db.query(User).filter(User.role == "student", User.is_active.is_(True))
    if cohort:
        query = query.filter(User.cohort == cohort)
    if program:
        query = query.filter(User.specialization == program)

    total = query.count()
    students = (
        query.order_by(User.enrollment_date.desc().nullslast(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "students": [s.public_profile() for s in students],
        "pagination": {
            "current": page,
            "total": math.ceil(total / limit),
            "count": len(students),
            "totalRecords": total,
        },
    }


@router.get("/{student_id}")
def read_student(
    student_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    _ensure_self_or_staff(user, student_id, "ver")
    student = db.get(User, student_id)
    if student is None:
        raise api_error(404, "Estudiante no encontrado")
    return student.public_profile()


@router.put("/{student_id}")
def update_student(
    student_id: int,
    body: StudentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    _ensure_self_or_staff(user, student_id, "actualizar")
    student = db.get(User, student_id)
    if student is None:
        raise api_error(404, "Estudiante no encontrado")
    if body.preferences is not None:
        apply_preferences(student, body.preferences)
    if body.metadata is not None:
        apply_metadata(student, body.metadata)
    db.commit()
    db.refresh(student)
    return {"message": "Información actualizada correctamente", "student": student.public_profile()}
