def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_api_requires_login(client):
    r = client.get("/api/documents")
    assert r.status_code == 401
    assert r.json["error"] == "login_required"


def test_login_me_and_logout(client):
    r = client.post("/auth/login", json={"email": "qa@example.com", "password": "wrong"})
    assert r.status_code == 401
    assert r.json["error"] == "invalid_credentials"

    r = client.post("/auth/login", json={"email": "qa@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["user"]["role"] == "QA"
    token = r.json["csrf_token"]
    assert token

    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "qa@example.com"

    r = client.post("/auth/logout", headers={"X-CSRF-Token": token})
    assert r.status_code == 200

    r = client.get("/auth/me")
    assert r.status_code == 401


def test_form_login_is_accepted(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_login_rate_limited_after_repeated_failures(client):
    for _ in range(5):
        r = client.post("/auth/login", json={"email": "reg@example.com", "password": "nope"})
        assert r.status_code == 401
    r = client.post("/auth/login", json={"email": "reg@example.com", "password": "pw"})
    assert r.status_code == 429


def test_unknown_route_is_json_404(client):
    r = client.get("/api/no-such-thing")
    assert r.status_code == 404
    assert r.json["ok"] is False
