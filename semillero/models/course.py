from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from ..db import Base
from ..util.dates import isoformat, utcnow

COURSE_STATES = ("ACTIVE", "ARCHIVED", "PROVISIONED", "DECLINED", "SUSPENDED")


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    google_classroom_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    section = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    room = Column(String(255), nullable=True)
    owner_id = Column(String(64), nullable=False, index=True)
    creation_time = Column(DateTime, nullable=True)
    update_time = Column(DateTime, nullable=True)
    enrollment_code = Column(String(64), nullable=True)
    course_state = Column(String(16), nullable=False, default="ACTIVE", index=True)
    alternate_link = Column(Text, nullable=True)
    teacher_folder = Column(JSON, nullable=True)
    calendar_id = Column(String(255), nullable=True)

    cohort = Column(String(120), nullable=True, index=True)
    program = Column(String(255), nullable=True, index=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_main_course = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)

    total_students = Column(Integer, nullable=False, default=0)
    total_assignments = Column(Integer, nullable=False, default=0)
    total_announcements = Column(Integer, nullable=False, default=0)
    last_sync_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def stats_dict(self) -> dict:
        return {
            "totalStudents": self.total_students or 0,
            "totalAssignments": self.total_assignments or 0,
            "totalAnnouncements": self.total_announcements or 0,
            "lastSyncDate": isoformat(self.last_sync_date),
        }

    def basic_info(self) -> dict:
        return {
            "id": self.id,
            "googleClassroomId": self.google_classroom_id,
            "name": self.name,
            "section": self.section,
            "description": self.description,
            "room": self.room,
            "ownerId": self.owner_id,
            "enrollmentCode": self.enrollment_code,
            "courseState": self.course_state,
            "alternateLink": self.alternate_link,
            "semilleroMetadata": {
                "cohort": self.cohort,
                "program": self.program,
                "startDate": isoformat(self.start_date),
                "endDate": isoformat(self.end_date),
                "isMainCourse": bool(self.is_main_course),
                "tags": list(self.tags or []),
            },
            "stats": self.stats_dict(),
        }
