import threading

from semillero.api import auth as auth_routes
from semillero.config import Settings
from semillero.models.user import User
from semillero.services.users import role_for_email


def test_auth_url(client, fake_oauth):
    r = client.get("/api/auth/google")
    assert r.status_code == 200
    assert r.json()["authUrl"].startswith("https://accounts.google.com/")


def test_browser_callback_redirects_with_code(client):
    for prefix in ("/auth", "/api/auth"):
        r = client.get(f"{prefix}/google/callback", params={"code": "4/abc"}, follow_redirects=False)
        assert r.status_code == 307
        assert r.headers["location"] == "http://frontend.test/login?code=4%2Fabc"


def test_browser_callback_redirects_with_error(client):
    r = client.get("/auth/google/callback", params={"error": "access_denied"}, follow_redirects=False)
    assert r.headers["location"] == "http://frontend.test/login?error=access_denied"
    r = client.get("/auth/google/callback", follow_redirects=False)
    assert r.headers["location"] == "http://frontend.test/login?error=no_code"


def test_google_login_creates_student(client, fake_oauth, db):
    r = client.post("/api/auth/google/callback", json={"code": "c1"})
    assert r.status_code == 200
    j = r.json()
    assert j["token"]
    assert j["user"]["email"] == "nuevo@example.com"
    assert j["user"]["role"] == "student"
    assert j["user"]["authMethod"] == "google"
    user = db.query(User).one()
    assert user.google_id == "google-123"
    assert user.google_access_token == "access-for-c1"
    assert user.google_refresh_token == "refresh-for-c1"
    assert not user.is_token_expired()


def test_google_login_role_escalation(client, fake_oauth):
    fake_oauth.profile["email"] = "jefa@semillerodigital.org"
    r = client.post("/api/auth/google/callback", json={"code": "c1"})
    assert r.json()["user"]["role"] == "coordinator"

    fake_oauth.profile.update(id="google-456", email="pepe@profesor.edu.ar")
    r = client.post("/api/auth/google/callback", json={"code": "c2"})
    assert r.json()["user"]["role"] == "teacher"


def test_role_for_email():
    config = Settings()
    assert role_for_email("a@semillerodigital.org", config) == "coordinator"
    assert role_for_email("a@coordinador.escuela.org", config) == "coordinator"
    assert role_for_email("a@teacher.school.com", config) == "teacher"
    assert role_for_email("a@profesor.escuela.org", config) == "teacher"
    assert role_for_email("a@gmail.com", config) == "student"
    assert role_for_email("a@myteacher.com", config) == "student"


def test_google_login_links_existing_local_account(client, fake_oauth, make_user, db):
    local = make_user(email="nuevo@example.com", password="secreto", role="teacher", name="Viejo Nombre")
    r = client.post("/api/auth/google/callback", json={"code": "c9"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == local.id
    db.refresh(local)
    assert local.auth_method == "both"
    assert local.role == "teacher"
    assert local.name == "Nuevo Usuario"
    assert local.picture == "https://example.com/p.png"
    assert local.google_id == "google-123"
    assert local.google_access_token == "access-for-c9"
    # local login keeps working
    r = client.post("/api/auth/login", json={"email": "nuevo@example.com", "password": "secreto"})
    assert r.status_code == 200


def test_google_id_match_wins_over_email(client, fake_oauth, make_user, db):
    by_google = make_user(email="old@example.com", google_id="google-123", google=True)
    by_email = make_user(email="nuevo@example.com", password="secreto")
    r = client.post("/api/auth/google/callback", json={"code": "c3"})
    assert r.json()["user"]["id"] == by_google.id
    db.refresh(by_email)
    assert by_email.google_id is None


def test_google_login_overwrites_tokens_every_time(client, fake_oauth, db):
    client.post("/api/auth/google/callback", json={"code": "first"})
    client.post("/api/auth/google/callback", json={"code": "second"})
    user = db.query(User).one()
    assert user.google_access_token == "access-for-second"
    assert fake_oauth.codes == ["first", "second"]


def test_google_login_missing_code(client, fake_oauth):
    r = client.post("/api/auth/google/callback", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Código de autorización requerido"


def test_google_login_exchange_failure(client, fake_oauth):
    fake_oauth.fail_exchange = True
    r = client.post("/api/auth/google/callback", json={"code": "bad"})
    assert r.status_code == 401
    assert r.json()["requiresReauth"] is True


def test_google_login_deactivated(client, fake_oauth, make_user):
    make_user(email="nuevo@example.com", google=True, is_active=False)
    r = client.post("/api/auth/google/callback", json={"code": "c1"})
    assert r.status_code == 401
    assert r.json()["error"] == "Cuenta desactivada"
    assert "token" not in r.json()


def test_refresh_google_token(client, fake_oauth, make_user, auth_headers, db):
    user = make_user(google_expired=True)
    old_refresh = user.google_refresh_token
    r = client.post("/api/auth/refresh", headers=auth_headers(user))
    assert r.status_code == 200
    assert r.json()["expiryDate"]
    assert fake_oauth.refreshed == [old_refresh]
    db.refresh(user)
    assert user.google_access_token == "refreshed-access"
    assert not user.is_token_expired()


def test_refresh_without_refresh_token(client, fake_oauth, make_user, auth_headers):
    user = make_user(password="secreto")
    r = client.post("/api/auth/refresh", headers=auth_headers(user))
    assert r.status_code == 401
    assert r.json()["requiresReauth"] is True


def test_refresh_rejected_by_google(client, fake_oauth, make_user, auth_headers):
    fake_oauth.fail_refresh = True
    user = make_user(google_expired=True)
    r = client.post("/api/auth/refresh", headers=auth_headers(user))
    assert r.status_code == 401
    assert r.json()["requiresReauth"] is True


def test_google_login_writes_user_off_the_event_loop(client, fake_oauth, monkeypatch):
    upsert_threads = []
    original = auth_routes.upsert_google_user

    def recording_upsert(*args, **kwargs):
        upsert_threads.append(threading.get_ident())
        return original(*args, **kwargs)

    monkeypatch.setattr(auth_routes, "upsert_google_user", recording_upsert)
    r = client.post("/api/auth/google/callback", json={"code": "c1"})
    assert r.status_code == 200
    assert len(upsert_threads) == 1
    assert fake_oauth.loop_thread is not None
    assert upsert_threads[0] != fake_oauth.loop_thread
