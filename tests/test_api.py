"""Tests for the HTTP surfaces."""

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi.testclient import TestClient

from usage_analytics.api.app import create_app
from usage_analytics.config import Settings
from usage_analytics.exceptions import StoreConnectionError
from usage_analytics.modules.store import keys
from usage_analytics.modules.timeseries import catalog

from tests.factories import recent_ms


@pytest.fixture
def server():
    return FakeServer()


def build_app(server, services=("capture", "analytics", "timeseries")):
    return create_app(
        Settings(),
        services=services,
        redis_factory=lambda settings: FakeAsyncRedis(server=server, decode_responses=True),
        start_scheduler=False,
    )


@pytest.fixture
def client(server):
    with TestClient(build_app(server)) as test_client:
        yield test_client


CAPTURE_BODY = {
    "model_used": "llama3.2",
    "input_tokens": 12,
    "output_tokens": 8,
    "response_time_ms": 250.0,
}


class TestHealth:
    """Tests for liveness and metrics exposition."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "all"}

    def test_metrics_exposition(self, client):
        client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "token_capture_requests_total" in response.text
        assert "redis_timeseries_operations_total" in response.text

    def test_single_service_name(self, server):
        with TestClient(build_app(server, services=("capture",))) as test_client:
            assert test_client.get("/health").json()["service"] == "capture"
            assert test_client.get("/analytics").status_code == 404

    def test_unreachable_store_fails_startup(self, server):
        server.connected = False

        with pytest.raises(StoreConnectionError):
            with TestClient(build_app(server)):
                pass

    def test_unknown_service(self, server):
        with pytest.raises(ValueError):
            build_app(server, services=("billing",))


class TestCaptureApi:
    """Tests for POST /capture and POST /classify."""

    def test_capture(self, client):
        response = client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1"})

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "u1"
        assert body["request_id"].startswith("req_")
        assert body["session_id"].startswith("sess_")
        assert body["new_session"] is True

    def test_user_from_header(self, client):
        response = client.post("/capture", json=CAPTURE_BODY, headers={"X-User-ID": "header-user"})

        assert response.json()["user_id"] == "header-user"

    def test_user_from_client_address(self, client):
        response = client.post("/capture", json=CAPTURE_BODY)

        assert response.json()["user_id"] == "user_testclient"

    def test_follow_up_reuses_session(self, client):
        first = client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1"}).json()
        second = client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1"}).json()

        assert second["session_id"] == first["session_id"]
        assert second["new_session"] is False

    def test_invalid_body(self, client):
        response = client.post("/capture", json={"input_tokens": -1, "user_id": "u1"})

        assert response.status_code == 422

    def test_unknown_status_rejected(self, client):
        response = client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1", "status": "cancelled"})

        assert response.status_code == 422
        counter = client.portal.call(client.app.state.timeseries_service.redis.get, keys.REQUESTS_TOTAL_COUNT)
        assert counter is None

    def test_classify(self, client):
        response = client.post("/classify", json={"message": "please debug my function"})

        assert response.status_code == 200
        assert response.json()["task_type"] == "code"


class TestAnalyticsApi:
    """Tests for GET /analytics."""

    def test_analytics(self, client):
        for user_id in ["u1", "u2"]:
            client.post("/capture", json={**CAPTURE_BODY, "user_id": user_id})

        response = client.get("/analytics")

        assert response.status_code == 200
        body = response.json()
        assert body["active_users_5m"] == 2
        assert body["active_sessions"] == 2
        assert [u["user_id"] for u in body["top_users"]] == ["u1", "u2"]
        assert body["model_usage"]["llama3.2"]["total_requests"] == 2
        assert body["error_rate"] == 0.0


class TestTimeSeriesApi:
    """Tests for the query endpoints."""

    def add_point(self, client, key, timestamp, value):
        client.portal.call(client.app.state.timeseries_service.add_data_point, key, timestamp, value)

    def test_query(self, client):
        base = recent_ms()
        self.add_point(client, catalog.ERROR_RATE, base, 1.5)
        self.add_point(client, catalog.ERROR_RATE, base + 1000, 2.5)

        response = client.post("/query", json={"key": catalog.ERROR_RATE, "start_time": 0, "end_time": base + 500})

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == [{"timestamp": base, "value": 1.5}]
        assert body["labels"] == {"metric_type": "error_rate"}

    def test_query_validation(self, client):
        response = client.post("/query", json={"key": "", "end_time": 1000})

        assert response.status_code == 422

    def test_multi_query(self, client):
        base = recent_ms()
        self.add_point(client, catalog.USERS_ACTIVE_5M, base, 3.0)

        response = client.post(
            "/multi-query",
            json=[
                {"key": catalog.USERS_ACTIVE_5M, "end_time": base + 1000},
                {"key": catalog.USERS_ACTIVE_1H, "end_time": base + 1000},
            ],
        )

        assert response.status_code == 200
        body = response.json()
        assert body[catalog.USERS_ACTIVE_5M]["data"][0]["value"] == 3.0
        assert body[catalog.USERS_ACTIVE_1H]["data"] == []

    def test_latest(self, client):
        base = recent_ms()
        self.add_point(client, catalog.ERROR_RATE, base, 4.0)

        response = client.get("/latest", params={"key": catalog.ERROR_RATE})

        assert response.status_code == 200
        assert response.json() == {"timestamp": base, "value": 4.0}

    def test_latest_missing_key_parameter(self, client):
        assert client.get("/latest").status_code == 400

    def test_latest_unknown_series(self, client):
        response = client.get("/latest", params={"key": "metrics:unknown"})

        assert response.status_code == 404
        assert response.json()["key"] == "metrics:unknown"

    def test_query_wrong_type_is_server_error(self, client):
        client.portal.call(client.app.state.timeseries_service.redis.set, "plain", "value")

        response = client.post("/query", json={"key": "plain", "end_time": 1000})

        assert response.status_code == 500
        assert response.json()["key"] == "plain"

    def test_catalog_created_on_startup(self, client):
        exists = client.portal.call(client.app.state.timeseries_service.redis.exists, catalog.ERROR_RATE)
        assert exists == 1

    def test_rollup_feeds_series(self, client):
        client.post("/capture", json={**CAPTURE_BODY, "user_id": "u1"})
        sampled_at = recent_ms()
        client.portal.call(client.app.state.rollup.collect, sampled_at)

        response = client.get("/latest", params={"key": catalog.USERS_ACTIVE_5M})

        assert response.json() == {"timestamp": sampled_at, "value": 1.0}
        counter = client.portal.call(client.app.state.timeseries_service.redis.get, keys.REQUESTS_TOTAL_COUNT)
        assert counter == "1"
