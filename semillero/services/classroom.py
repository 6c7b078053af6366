from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger
from sqlalchemy.orm import Session

from ..models.course import COURSE_STATES, Course
from ..models.user import User
from ..util.dates import parse_datetime, utcnow

TEACHING_ROLES = ("teacher", "coordinator", "admin")


class ClassroomError(RuntimeError):
    """Raised when a Google Classroom call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ClassroomAuthError(ClassroomError):
    """Google rejected the caller's access token."""


def _http_status(exc: HttpError) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None and getattr(exc, "resp", None) is not None:
        status = getattr(exc.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class ClassroomService:
    """Read-only access to Google Classroom on behalf of one user."""

    def __init__(self, resource: Any):
        self.resource = resource

    @classmethod
    def for_user(cls, user: User) -> "ClassroomService":
        creds = Credentials(token=user.google_access_token)
        return cls(build("classroom", "v1", credentials=creds, cache_discovery=False))

    def _execute(self, request) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except HttpError as exc:
            status = _http_status(exc)
            logger.bind(tag="classroom.api").warning(f"classroom API error status={status}: {exc}")
            if status == 401:
                raise ClassroomAuthError("Google rechazó el token de acceso", status=401) from exc
            raise ClassroomError(str(exc), status=status) from exc
        except GoogleAuthError as exc:
            raise ClassroomAuthError(str(exc), status=401) from exc

    def _collect(self, method: Callable[..., Any], key: str, **params: Any) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            if page_token:
                params["pageToken"] = page_token
            response = self._execute(method(**params))
            items.extend(response.get(key) or [])
            page_token = response.get("nextPageToken")
            if not page_token:
                return items

    def list_courses(self, as_teacher: bool) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"courseStates": ["ACTIVE"]}
        if as_teacher:
            params["teacherId"] = "me"
        else:
            params["studentId"] = "me"
        return self._collect(self.resource.courses().list, "courses", **params)

    def list_students(self, course_id: str) -> List[Dict[str, Any]]:
        return self._collect(self.resource.courses().students().list, "students", courseId=course_id)

    def list_coursework(self, course_id: str) -> List[Dict[str, Any]]:
        return self._collect(
            self.resource.courses().courseWork().list,
            "courseWork",
            courseId=course_id,
            courseWorkStates=["PUBLISHED"],
        )

    def list_my_submissions(self, course_id: str, coursework_id: str) -> List[Dict[str, Any]]:
        return self._collect(
            self.resource.courses().courseWork().studentSubmissions().list,
            "studentSubmissions",
            courseId=course_id,
            courseWorkId=coursework_id,
            userId="me",
        )

    def list_announcements(self, course_id: str) -> List[Dict[str, Any]]:
        return self._collect(
            self.resource.courses().announcements().list,
            "announcements",
            courseId=course_id,
            announcementStates=["PUBLISHED"],
        )


ClassroomFactory = Callable[[User], ClassroomService]


def get_classroom_factory() -> ClassroomFactory:
    return ClassroomService.for_user


def _course_state(value: Optional[str]) -> str:
    return value if value in COURSE_STATES else "ACTIVE"


def _new_course(remote: Dict[str, Any]) -> Course:
    return Course(
        google_classroom_id=str(remote["id"]),
        name=remote.get("name") or "",
        section=remote.get("section"),
        description=remote.get("description"),
        room=remote.get("room"),
        owner_id=str(remote.get("ownerId") or ""),
        creation_time=parse_datetime(remote.get("creationTime")),
        update_time=parse_datetime(remote.get("updateTime")),
        enrollment_code=remote.get("enrollmentCode"),
        course_state=_course_state(remote.get("courseState")),
        alternate_link=remote.get("alternateLink"),
        teacher_folder=remote.get("teacherFolder"),
        calendar_id=remote.get("calendarId"),
        tags=[],
    )


def _refresh_course(course: Course, remote: Dict[str, Any]) -> None:
    course.name = remote.get("name") or course.name
    course.section = remote.get("section")
    course.description = remote.get("description")
    course.room = remote.get("room")
    course.update_time = parse_datetime(remote.get("updateTime"))
    course.course_state = _course_state(remote.get("courseState"))
    course.alternate_link = remote.get("alternateLink")


def sync_courses(db: Session, remote_courses: Iterable[Dict[str, Any]]) -> List[Course]:
    """Upsert Classroom courses into the local mirror and stamp their sync date."""
    synced: Dict[str, Course] = {}
    created = 0
    now = utcnow()
    for remote in remote_courses:
        google_id = remote.get("id")
        if not google_id:
            continue
        google_id = str(google_id)
        course = synced.get(google_id) or (
            db.query(Course).filter(Course.google_classroom_id == google_id).first()
        )
        if course is None:
            course = _new_course(remote)
            db.add(course)
            created += 1
        else:
            _refresh_course(course, remote)
        course.last_sync_date = now
        synced[google_id] = course
    db.commit()
    for course in synced.values():
        db.refresh(course)
    logger.bind(tag="classroom.sync").info(f"synced {len(synced)} courses ({created} new)")
    return list(synced.values())


def record_course_stats(db: Session, google_id: str, **counts: int) -> Optional[Course]:
    """Store fetched counts on the mirrored course; unsynced courses are left alone."""
    course = db.query(Course).filter(Course.google_classroom_id == str(google_id)).first()
    if course is None:
        return None
    for column, value in counts.items():
        setattr(course, column, value)
    db.commit()
    return course
