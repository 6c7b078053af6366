from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.user import User
from ..security import require_roles

router = APIRouter(tags=["teachers"])


@router.get("")
def list_teachers(
    db: Session = Depends(get_db),
    _user: User = Depends(require_roles("teacher", "coordinator", "admin")),
) -> Dict[str, Any]:
    teachers = (
        db.query(User)
        .filter(User.role.in_(("teacher", "coordinator")), User.is_active.is_(True))
        .order_by(User.name.asc())
        .all()
    )
    return {"teachers": [t.public_profile() for t in teachers], "total": len(teachers)}
