def test_health(client):
    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_redis_health_without_redis(client):
    assert client.get("/health/redis").json() == {"status": "unhealthy", "redis": "disconnected"}
