from shared.core import HealthStatus, ServiceHealth

def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.json()["status"] == "pass"
    assert resp.json()["service"] == "catalog-service"

def test_liveness(client):
    assert client.get('/health/live').json() == {"status": "alive"}

def test_readiness_checks_database(client):
    body = client.get('/health/ready').json()
    assert body["checks"]["database:connectivity"]["status"] == "pass"
    assert "cache:connectivity" not in body["checks"]

def test_startup_sees_catalog_tables(client):
    resp = client.get('/health/startup')
    assert resp.status_code == 200
    assert resp.json()["status"] == "started"

def test_metrics_include_cache_stats(client):
    created = client.post('/api/products', json={"name": "Widget"}).json()
    client.get(f"/api/products/{created['id']}")
    client.get(f"/api/products/{created['id']}")
    body = client.get('/metrics').json()
    assert body["product_cache"]["hits"] == 1
    assert body["product_cache"]["misses"] == 1
    assert "circuit_breakers" in body

def test_info_lists_endpoints(client):
    body = client.get('/info').json()
    assert body["endpoints"]["products"] == "/api/products"
    assert body["endpoints"]["graphql"] == "/graphql"

def test_unreachable_redis_warns_and_reuses_one_client():
    health = ServiceHealth("catalog-service", redis_url="redis://127.0.0.1:1/0")
    redis_client = health._redis
    first = health.readiness_checks()
    second = health.readiness_checks()
    assert first["cache:connectivity"]["status"] == HealthStatus.WARN
    assert second["cache:connectivity"]["status"] == HealthStatus.WARN
    assert health._redis is redis_client
