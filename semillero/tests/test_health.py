def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j["status"] == "OK"
    assert j["environment"] == "test"
    assert j["timestamp"].endswith("Z")


def test_ready_checks_database(client):
    r = client.get("/health/ready")
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is True
    assert {c["name"] for c in j["checks"]} == {"database"}


def test_unknown_route_is_404_with_error_body(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json()["error"] == "Ruta no encontrada"
    assert "/api/nope" in r.json()["message"]
