def test_health(client, db_session):
    res = client.get("/health")

    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["timestamp"].endswith("Z")


def test_version(app, client):
    res = client.get("/version")

    assert res.status_code == 200
    assert res.get_json() == {"name": app.config["APP_NAME"], "version": app.config["APP_VERSION"]}


def test_cors_allows_configured_origin(client, db_session):
    res = client.get("/version", headers={"Origin": "http://localhost:5173"})
    assert res.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    res = client.get("/version", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in res.headers
