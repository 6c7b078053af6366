from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CourseMetadataUpdate(BaseModel):
    cohort: Optional[str] = Field(default=None, max_length=120)
    program: Optional[str] = Field(default=None, max_length=255)
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    isMainCourse: Optional[bool] = None
    tags: Optional[List[str]] = None
