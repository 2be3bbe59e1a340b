def test_health_endpoint(client):
    response = client.get("/api/health")

    body = response.get_json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["service"] == "uniclaim-backend"
    assert body["timestamp"]


def test_unknown_route_returns_json(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Not found"}


def test_wrong_method_returns_json(client):
    response = client.get("/admin/api/conversations/cleanup/ghosts")

    assert response.status_code == 405
    assert response.get_json()["success"] is False
