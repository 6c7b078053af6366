from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import INTERNAL_ERROR, api_error
from ..models.user import User
from ..security import require_google_token
from ..services.classroom import (
    TEACHING_ROLES,
    ClassroomAuthError,
    ClassroomError,
    ClassroomFactory,
    get_classroom_factory,
    record_course_stats,
    sync_courses,
)
from ..util.dates import isoformat, utcnow

router = APIRouter(prefix="/courses", tags=["classroom"])


def _classroom_error(exc: ClassroomError, message: str) -> HTTPException:
    if isinstance(exc, ClassroomAuthError):
        return api_error(401, "Token de Google inválido", "Debes reautenticarte con Google", requiresReauth=True)
    if exc.status == 403:
        return api_error(403, "Permisos insuficientes", "Google Classroom denegó el acceso a este recurso")
    if exc.status == 404:
        return api_error(404, "Curso no encontrado", message)
    return api_error(500, INTERNAL_ERROR, message)


@router.get("")
def list_courses(
    db: Session = Depends(get_db),
    user: User = Depends(require_google_token),
    classroom_for: ClassroomFactory = Depends(get_classroom_factory),
) -> Dict[str, Any]:
    """Fetch the caller's active Classroom courses and mirror them locally."""
    try:
        remote = classroom_for(user).list_courses(as_teacher=user.role in TEACHING_ROLES)
    except ClassroomError as exc:
        raise _classroom_error(exc, "No se pudieron obtener los cursos") from exc
    courses = sync_courses(db, remote)
    return {
        "courses": [course.basic_info() for course in courses],
        "total": len(courses),
        "syncDate": isoformat(utcnow()),
    }


@router.get("/{course_id}/students")
def list_course_students(
    course_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_google_token),
    classroom_for: ClassroomFactory = Depends(get_classroom_factory),
) -> Dict[str, Any]:
    if user.role == "student":
        raise api_error(
            403,
            "Permisos insuficientes",
            "Los estudiantes no pueden ver la lista de otros estudiantes",
        )
    try:
        students = classroom_for(user).list_students(course_id)
    except ClassroomError as exc:
        raise _classroom_error(exc, "No se pudieron obtener los estudiantes del curso") from exc
    record_course_stats(db, course_id, total_students=len(students))

    google_ids = [str(s["userId"]) for s in students if s.get("userId")]
    local_users = {}
    if google_ids:
        local_users = {u.google_id: u for u in db.query(User).filter(User.google_id.in_(google_ids)).all()}

    enriched: List[Dict[str, Any]] = []
    for student in students:
        local = local_users.get(str(student.get("userId")))
        enriched.append(
            {
                "googleId": student.get("userId"),
                "profile": student.get("profile"),
                "localData": local.public_profile() if local else None,
            }
        )
    return {"courseId": course_id, "students": enriched, "total": len(enriched)}


@router.get("/{course_id}/coursework")
def list_course_work(
    course_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_google_token),
    classroom_for: ClassroomFactory = Depends(get_classroom_factory),
) -> Dict[str, Any]:
    classroom = classroom_for(user)
    try:
        coursework = classroom.list_coursework(course_id)
        submissions: List[Dict[str, Any]] = []
        if user.role == "student":
            for work in coursework:
                submissions.extend(classroom.list_my_submissions(course_id, work["id"]))
    except ClassroomError as exc:
        raise _classroom_error(exc, "No se pudieron obtener las tareas del curso") from exc
    record_course_stats(db, course_id, total_assignments=len(coursework))

    result: Dict[str, Any] = {"courseId": course_id, "coursework": coursework, "total": len(coursework)}
    if user.role == "student":
        result["submissions"] = submissions
    return result


@router.get("/{course_id}/announcements")
def list_course_announcements(
    course_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_google_token),
    classroom_for: ClassroomFactory = Depends(get_classroom_factory),
) -> Dict[str, Any]:
    try:
        announcements = classroom_for(user).list_announcements(course_id)
    except ClassroomError as exc:
        raise _classroom_error(exc, "No se pudieron obtener los anuncios del curso") from exc
    record_course_stats(db, course_id, total_announcements=len(announcements))
    return {"courseId": course_id, "announcements": announcements, "total": len(announcements)}
