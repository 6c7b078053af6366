from semillero.models.user import User
from semillero.security import decode_access_token


def test_register_scenario(client):
    r = client.post("/api/auth/register", json={"email": "a@x.com", "password": "abcdef", "name": "Ana"})
    assert r.status_code == 201
    j = r.json()
    assert j["token"]
    assert j["user"]["role"] == "student"
    assert j["user"]["authMethod"] == "local"
    claims = decode_access_token(j["token"])
    assert claims["email"] == "a@x.com"
    assert claims["role"] == "student"
    assert int(claims["sub"]) == j["user"]["id"]


def test_registered_token_is_usable(client):
    token = client.post(
        "/api/auth/register", json={"email": "b@x.com", "password": "abcdef", "name": "Beto"}
    ).json()["token"]
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "b@x.com"


def test_register_with_role(client):
    r = client.post(
        "/api/auth/register",
        json={"email": "t@x.com", "password": "abcdef", "name": "Tina", "role": "teacher"},
    )
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "teacher"


def test_register_rejects_admin_role(client):
    r = client.post(
        "/api/auth/register",
        json={"email": "adm@x.com", "password": "abcdef", "name": "Admin", "role": "admin"},
    )
    assert r.status_code == 400


def test_register_duplicate_email(client):
    body = {"email": "dup@x.com", "password": "abcdef", "name": "Dup"}
    assert client.post("/api/auth/register", json=body).status_code == 201
    r = client.post("/api/auth/register", json={**body, "email": "DUP@x.com"})
    assert r.status_code == 400
    assert r.json()["error"] == "El usuario ya existe"
    assert "token" not in r.json()


def test_register_duplicate_of_google_account(client, make_user):
    make_user(email="g@x.com", google=True)
    r = client.post("/api/auth/register", json={"email": "g@x.com", "password": "abcdef", "name": "Gabi"})
    assert r.status_code == 400


def test_register_validation(client):
    cases = [
        {"email": "not-an-email", "password": "abcdef", "name": "Ana"},
        {"email": "c@x.com", "password": "abc", "name": "Ana"},
        {"email": "c@x.com", "password": "abcdef", "name": " A "},
        {"email": "c@x.com", "password": "abcdef"},
    ]
    for body in cases:
        r = client.post("/api/auth/register", json=body)
        assert r.status_code == 400, body
        assert r.json()["error"] == "Datos inválidos"


def test_two_local_users_without_google_id(client, db):
    for email in ("one@x.com", "two@x.com"):
        r = client.post("/api/auth/register", json={"email": email, "password": "abcdef", "name": "Local"})
        assert r.status_code == 201
    users = db.query(User).all()
    assert len(users) == 2
    assert all(u.google_id is None for u in users)
    r = client.post("/api/auth/login", json={"email": "two@x.com", "password": "abcdef"})
    assert r.status_code == 200


def test_login_success_updates_last_login(client, make_user, db):
    user = make_user(email="ana@x.com", password="secreto", last_login=None)
    r = client.post("/api/auth/login", json={"email": " ANA@x.com ", "password": "secreto"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user.id
    db.refresh(user)
    assert user.last_login is not None


def test_login_wrong_password(client, make_user):
    make_user(email="ana@x.com", password="secreto")
    r = client.post("/api/auth/login", json={"email": "ana@x.com", "password": "otra-cosa"})
    assert r.status_code == 401
    assert r.json()["error"] == "Credenciales inválidas"
    assert "token" not in r.json()


def test_login_unknown_email(client):
    r = client.post("/api/auth/login", json={"email": "ghost@x.com", "password": "whatever"})
    assert r.status_code == 401
    assert r.json()["error"] == "Credenciales inválidas"
    assert "token" not in r.json()


def test_login_google_only_account(client, make_user):
    make_user(email="g@x.com", google=True)
    r = client.post("/api/auth/login", json={"email": "g@x.com", "password": "whatever"})
    assert r.status_code == 401
    assert r.json()["error"] == "Cuenta sin contraseña"


def test_login_deactivated(client, make_user):
    make_user(email="off@x.com", password="secreto", is_active=False)
    r = client.post("/api/auth/login", json={"email": "off@x.com", "password": "secreto"})
    assert r.status_code == 401
    assert r.json()["error"] == "Cuenta desactivada"
    assert "token" not in r.json()


def test_me_never_exposes_secrets(client, make_user, auth_headers):
    user = make_user(password="secreto", google=True)
    j = client.get("/api/auth/me", headers=auth_headers(user)).json()
    assert j["id"] == user.id
    assert "password_hash" not in j
    assert not any("token" in key.lower() for key in j)


def test_update_profile(client, make_user, auth_headers):
    user = make_user(password="secreto")
    r = client.put(
        "/api/auth/profile",
        headers=auth_headers(user),
        json={"name": "Nombre Nuevo", "preferences": {"language": "en", "notifications": {"push": False}}},
    )
    assert r.status_code == 200
    j = r.json()["user"]
    assert j["name"] == "Nombre Nuevo"
    assert j["preferences"]["language"] == "en"
    assert j["preferences"]["notifications"] == {"email": True, "push": False}
    assert j["preferences"]["timezone"] == "America/Argentina/Buenos_Aires"


def test_logout(client, make_user, auth_headers):
    user = make_user(password="secreto")
    r = client.post("/api/auth/logout", headers=auth_headers(user))
    assert r.status_code == 200
    assert r.json()["message"]
