from __future__ import annotations

import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import api_error
from ..models.course import Course
from ..models.user import User
from ..schemas.courses import CourseMetadataUpdate
from ..schemas.users import ASSIGNABLE_ROLES, RoleUpdate, StatusUpdate
from ..security import require_roles
from ..util.dates import isoformat, parse_datetime, to_naive_utc, utcnow

router = APIRouter(tags=["coordinators"])

staff_only = require_roles("coordinator", "admin")

RECENT_ACTIVITY_DAYS = 7
RECENT_ACTIVITY_LIMIT = 10
ATTENDANCE_DEFAULT_DAYS = 30
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_date_param(name: str, value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if value in (None, ""):
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise api_error(400, "Fecha inválida", f"El parámetro {name} debe ser una fecha ISO 8601")
    if end_of_day and _DATE_ONLY_RE.match(value):
        # a bare date closes the window at the last instant of that day
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def _active_students(db: Session):
    return db.query(User).filter(User.role == "student", User.is_active.is_(True))


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), _user: User = Depends(staff_only)) -> Dict[str, Any]:
    total_students = _active_students(db).count()
    total_teachers = db.query(User).filter(User.role == "teacher", User.is_active.is_(True)).count()
    total_courses = db.query(Course).filter(Course.course_state == "ACTIVE").count()

    by_cohort = (
        db.query(User.cohort, func.count(User.id))
        .filter(User.role == "student", User.is_active.is_(True), User.cohort.isnot(None))
        .group_by(User.cohort)
        .order_by(User.cohort.asc())
        .all()
    )
    count_col = func.count(User.id)
    by_program = (
        db.query(User.specialization, count_col)
        .filter(User.role == "student", User.is_active.is_(True), User.specialization.isnot(None))
        .group_by(User.specialization)
        .order_by(count_col.desc(), User.specialization.asc())
        .all()
    )

    since = utcnow() - timedelta(days=RECENT_ACTIVITY_DAYS)
    recent_query = db.query(User).filter(User.is_active.is_(True), User.last_login >= since)
    active_last_week = recent_query.count()
    recent = recent_query.order_by(User.last_login.desc()).limit(RECENT_ACTIVITY_LIMIT).all()

    return {
        "metrics": {
            "totalStudents": total_students,
            "totalTeachers": total_teachers,
            "totalCourses": total_courses,
            "activeUsersLastWeek": active_last_week,
        },
        "distribution": {
            "studentsByCohort": [{"_id": cohort, "count": count} for cohort, count in by_cohort],
            "studentsByProgram": [{"_id": program, "count": count} for program, count in by_program],
        },
        "recentActivity": [
            {
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "role": u.role,
                "cohort": u.cohort,
                "lastLogin": isoformat(u.last_login),
            }
            for u in recent
        ],
    }


@router.get("/reports/attendance")
def attendance_report(
    cohort: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(staff_only),
) -> Dict[str, Any]:
    """Platform attendance: which students logged in during the window."""
    end = _parse_date_param("endDate", endDate, end_of_day=True) or utcnow()
    start = _parse_date_param("startDate", startDate) or end - timedelta(days=ATTENDANCE_DEFAULT_DAYS)
    if start > end:
        raise api_error(400, "Rango de fechas inválido", "startDate debe ser anterior a endDate")

    query = _active_students(db)
    if cohort:
        query = query.filter(User.cohort == cohort)
    students = query.order_by(User.name.asc()).all()

    rows: List[Dict[str, Any]] = []
    present = 0
    for student in students:
        attended = student.last_login is not None and start <= student.last_login <= end
        present += int(attended)
        rows.append(
            {
                "id": student.id,
                "name": student.name,
                "email": student.email,
                "cohort": student.cohort,
                "lastLogin": isoformat(student.last_login),
                "present": attended,
            }
        )

    total = len(rows)
    return {
        "parameters": {"cohort": cohort, "startDate": isoformat(start), "endDate": isoformat(end)},
        "summary": {
            "totalStudents": total,
            "present": present,
            "absent": total - present,
            "attendanceRate": round(present / total, 4) if total else 0.0,
        },
        "students": rows,
    }


@router.get("/reports/progress")
def progress_report(
    cohort: Optional[str] = None,
    courseId: Optional[str] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(staff_only),
) -> Dict[str, Any]:
    """Course statistics of the local mirror, scoped by cohort and/or course."""
    query = db.query(Course)
    if cohort:
        query = query.filter(Course.cohort == cohort)
    if courseId:
        query = query.filter(Course.google_classroom_id == courseId)
    courses = query.order_by(Course.name.asc()).all()

    students = _active_students(db)
    if cohort:
        students = students.filter(User.cohort == cohort)

    return {
        "parameters": {"cohort": cohort, "courseId": courseId},
        "summary": {
            "totalCourses": len(courses),
            "totalAssignments": sum(c.total_assignments or 0 for c in courses),
            "totalAnnouncements": sum(c.total_announcements or 0 for c in courses),
            "studentsInCohort": students.count(),
        },
        "courses": [c.basic_info() for c in courses],
    }


@router.put("/courses/{course_id}")
def update_course_metadata(
    course_id: str,
    body: CourseMetadataUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(staff_only),
) -> Dict[str, Any]:
    """Program metadata of a mirrored course; sync never touches these fields."""
    course = db.query(Course).filter(Course.google_classroom_id == course_id).first()
    if course is None:
        raise api_error(404, "Curso no encontrado", "El curso no ha sido sincronizado")
    incoming = body.model_dump(exclude_unset=True)
    if "cohort" in incoming:
        course.cohort = incoming["cohort"]
    if "program" in incoming:
        course.program = incoming["program"]
    if "startDate" in incoming:
        course.start_date = to_naive_utc(incoming["startDate"])
    if "endDate" in incoming:
        course.end_date = to_naive_utc(incoming["endDate"])
    if incoming.get("isMainCourse") is not None:
        course.is_main_course = incoming["isMainCourse"]
    if "tags" in incoming:
        course.tags = list(incoming["tags"] or [])
    db.commit()
    db.refresh(course)
    logger.bind(tag="admin.course", actor=actor.id, course=course.google_classroom_id).info("metadata updated")
    return {"message": "Curso actualizado correctamente", "course": course.basic_info()}


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(staff_only),
) -> Dict[str, Any]:
    if body.role not in ASSIGNABLE_ROLES:
        raise api_error(400, "Rol inválido", "El rol debe ser: student, teacher o coordinator")
    user = db.get(User, user_id)
    if user is None:
        raise api_error(404, "Usuario no encontrado")
    user.role = body.role
    db.commit()
    db.refresh(user)
    logger.bind(tag="admin.role", actor=actor.id, user=user.id).info(f"role changed to {user.role}")
    return {"message": "Rol actualizado correctamente", "user": user.public_profile()}


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: int,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(staff_only),
) -> Dict[str, Any]:
    if user_id == actor.id and not body.isActive:
        raise api_error(400, "Operación inválida", "No puedes desactivar tu propia cuenta")
    user = db.get(User, user_id)
    if user is None:
        raise api_error(404, "Usuario no encontrado")
    user.is_active = body.isActive
    db.commit()
    db.refresh(user)
    logger.bind(tag="admin.status", actor=actor.id, user=user.id).info(f"isActive={user.is_active}")
    return {"message": "Estado actualizado correctamente", "user": user.public_profile()}


@router.get("/users")
def list_users(
    role: Optional[str] = None,
    cohort: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    _user: User = Depends(staff_only),
) -> Dict[str, Any]:
    query = db.query(User).filter(User.is_active.is_(True))
    if role:
        query = query.filter(User.role == role)
    if cohort:
        query = query.filter(User.cohort == cohort)

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "users": [u.public_profile() for u in users],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }
