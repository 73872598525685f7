import pytest
from fastapi.testclient import TestClient

from conftest import CountingExecutor, insert_order, insert_user
from delivery_stats.application.services.dashboard_service import DashboardStatisticsService
from delivery_stats.infrastructure.database.sqlite_aggregator import SQLiteMetricsAggregator
from delivery_stats.infrastructure.http.dashboard_server import DashboardHttpServer


@pytest.fixture
def service(executor, clock):
    aggregator = SQLiteMetricsAggregator(executor=executor, clock=clock)
    return DashboardStatisticsService(aggregator=aggregator, clock=clock, roster_limit=2)


@pytest.fixture
def client(service):
    return TestClient(DashboardHttpServer(statistics_service=service).app)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_order_statistics(db_path, client):
    insert_order(db_path, "pending", "2026-10-14 09:00:00")
    insert_order(db_path, "delivered", "2026-10-13 09:00:00", delivered_at="2026-10-14 09:30:00")

    resp = client.get("/stats/orders")

    assert resp.status_code == 200
    body = resp.json()
    assert body["group"] == "orders"
    assert body["counts"]["total_orders"] == 2
    assert body["counts"]["delivered_today_orders"] == 1


def test_user_statistics(db_path, client):
    insert_user(db_path, "driver", "zoe")
    resp = client.get("/stats/users")
    assert resp.status_code == 200
    assert resp.json()["counts"]["total_drivers"] == 1


def test_overview(db_path, client):
    insert_order(db_path, "cancelled", "2026-10-14 09:00:00", cancelled_at="2026-10-14 10:00:00")
    resp = client.get("/stats")
    assert resp.status_code == 200
    body = resp.json()
    assert body["cancelled_orders"] == 1
    assert body["total_customers"] == 0


def test_driver_roster(db_path, client):
    for name in ("zoe", "adam", "mike"):
        insert_user(db_path, "driver", name)

    resp = client.get("/drivers")
    assert resp.status_code == 200
    body = resp.json()
    assert [d["username"] for d in body["drivers"]] == ["adam", "mike"]
    assert body["truncated"] is True

    resp = client.get("/drivers", params={"limit": 1})
    assert [d["username"] for d in resp.json()["drivers"]] == ["adam"]


def test_driver_roster_rejects_non_positive_limit(client):
    resp = client.get("/drivers", params={"limit": 0})
    assert resp.status_code == 422


def test_cache_status_and_invalidation(client, executor):
    assert client.get("/cache").json()["order_stats"]["state"] == "empty"

    client.get("/stats/orders")
    status = client.get("/cache").json()
    assert status["order_stats"]["state"] == "valid"
    assert status["order_stats"]["expires_at"] is not None

    resp = client.post("/cache/order_stats/invalidate")
    assert resp.status_code == 200
    assert client.get("/cache").json()["order_stats"]["state"] == "stale"

    executor.calls.clear()
    client.get("/stats/orders")
    assert len(executor.calls) == 1


def test_invalidate_all(client):
    client.get("/stats/orders")
    client.get("/stats/users")
    resp = client.post("/cache/invalidate")
    assert resp.status_code == 200
    status = client.get("/cache").json()
    assert status["order_stats"]["state"] == "stale"
    assert status["user_stats"]["state"] == "stale"


def test_invalidate_unknown_key_class(client):
    resp = client.post("/cache/orders/invalidate")
    assert resp.status_code == 404


def test_unavailable_store_returns_503(tmp_path, clock):
    aggregator = SQLiteMetricsAggregator(executor=CountingExecutor(str(tmp_path / "missing.db")), clock=clock)
    service = DashboardStatisticsService(aggregator=aggregator, clock=clock)
    client = TestClient(DashboardHttpServer(statistics_service=service).app)

    for path in ("/stats/orders", "/stats/users", "/stats", "/drivers"):
        resp = client.get(path)
        assert resp.status_code == 503, path
