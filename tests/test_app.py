def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["timestamp"]
    assert "environment" in body


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_database_diagnostic(client):
    body = client.get("/test").json()
    assert body["database"] == "connected"
    assert isinstance(body["collections"], list)


def test_unknown_api_path(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "API endpoint not found"


def test_unknown_api_path_for_any_method(client):
    resp = client.delete("/api/nothing/here")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "API endpoint not found"


def test_wrong_method_on_known_route_is_405(client, alice):
    resp = client.patch("/api/users/profile", json={}, headers=alice["headers"])
    assert resp.status_code == 405


def test_route_not_found_details_are_kept(client, alice):
    resp = client.get("/api/social/chats/garbage", headers=alice["headers"])
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Chat not found"
