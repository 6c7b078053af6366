import os
import shutil
import tempfile
import threading
import time
from datetime import timedelta

import pytest

# Settings are read at import time, so the environment goes first.
_TMP_DIR = tempfile.mkdtemp(prefix="semillero_test_")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP_DIR, "test.db")
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"

from fastapi.testclient import TestClient  # noqa: E402

from semillero.db import Base, SessionLocal, engine  # noqa: E402
from semillero.main import app  # noqa: E402
from semillero.models.user import User  # noqa: E402
from semillero.security import create_access_token, hash_password  # noqa: E402
from semillero.services.classroom import get_classroom_factory  # noqa: E402
from semillero.services.google_oauth import GoogleOAuthError, get_google_oauth  # noqa: E402
from semillero.util.dates import utcnow  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role="student", password=None, google=False, google_expired=False, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"user{n}@example.com"),
            name=fields.pop("name", f"User {n}"),
            role=role,
            password_hash=hash_password(password) if password else None,
            auth_method="local" if password else "google",
            **fields,
        )
        if google or google_expired:
            user.google_id = user.google_id or f"g-{n}"
            user.google_access_token = f"access-{n}"
            user.google_refresh_token = f"refresh-{n}"
            offset = timedelta(hours=-1) if google_expired else timedelta(hours=1)
            user.google_token_expiry = utcnow() + offset
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


class FakeOAuth:
    def __init__(self):
        self.codes = []
        self.refreshed = []
        self.fail_exchange = False
        self.fail_refresh = False
        self.profile = {
            "id": "google-123",
            "email": "Nuevo@Example.com",
            "name": "Nuevo Usuario",
            "picture": "https://example.com/p.png",
        }
        self.refresh_response = {"access_token": "refreshed-access", "expires_in": 3600}
        self.loop_thread = None

    async def authorization_url(self):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client-id&access_type=offline"

    async def exchange_code(self, code):
        if self.fail_exchange:
            raise GoogleOAuthError("invalid_grant")
        self.codes.append(code)
        return {
            "access_token": f"access-for-{code}",
            "refresh_token": f"refresh-for-{code}",
            "expires_at": int(time.time()) + 3600,
        }

    async def fetch_profile(self, token):
        self.loop_thread = threading.get_ident()
        return dict(self.profile)

    async def refresh(self, refresh_token):
        if self.fail_refresh:
            raise GoogleOAuthError("invalid_grant")
        self.refreshed.append(refresh_token)
        return dict(self.refresh_response)


@pytest.fixture()
def fake_oauth():
    fake = FakeOAuth()
    app.dependency_overrides[get_google_oauth] = lambda: fake
    return fake


class FakeClassroom:
    def __init__(self):
        self.calls = []
        self.courses = []
        self.students = {}
        self.coursework = {}
        self.submissions = {}
        self.announcements = {}
        self.errors = {}

    def _maybe_fail(self, name):
        err = self.errors.get(name)
        if err is not None:
            raise err

    def list_courses(self, as_teacher):
        self.calls.append(("courses", as_teacher))
        self._maybe_fail("courses")
        return [dict(c) for c in self.courses]

    def list_students(self, course_id):
        self.calls.append(("students", course_id))
        self._maybe_fail("students")
        return list(self.students.get(course_id, []))

    def list_coursework(self, course_id):
        self.calls.append(("coursework", course_id))
        self._maybe_fail("coursework")
        return list(self.coursework.get(course_id, []))

    def list_my_submissions(self, course_id, coursework_id):
        self.calls.append(("submissions", coursework_id))
        self._maybe_fail(f"submissions:{coursework_id}")
        return list(self.submissions.get(coursework_id, []))

    def list_announcements(self, course_id):
        self.calls.append(("announcements", course_id))
        self._maybe_fail("announcements")
        return list(self.announcements.get(course_id, []))


@pytest.fixture()
def fake_classroom():
    fake = FakeClassroom()
    app.dependency_overrides[get_classroom_factory] = lambda: (lambda user: fake)
    return fake
