import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from middleware.request_id import RequestIDMiddleware


@pytest.fixture
def app_with_middleware():
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/geocoding")
    async def geocode_endpoint():
        return {"ok": True}

    @app.get("/health")
    async def health_endpoint():
        return {"status": "ok"}

    return app


@pytest.fixture
def client(app_with_middleware):
    return TestClient(app_with_middleware)


class TestRequestIDMiddleware:
    def test_adds_request_id_header_to_response(self, client):
        response = client.get("/geocoding")
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 32
        int(request_id, 16)

    def test_unique_ids_per_request(self, client):
        r1 = client.get("/geocoding")
        r2 = client.get("/geocoding")
        assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]

    def test_reports_response_time(self, client):
        response = client.get("/geocoding")
        assert float(response.headers["X-Response-Time-Ms"]) >= 0.0

    def test_skips_health_endpoints(self, client, monkeypatch):
        """Health check requests are not logged but still get request IDs."""
        logged = []
        monkeypatch.setattr("middleware.request_id.logger.info", lambda *a, **kw: logged.append(kw))
        response = client.get("/health")
        client.get("/geocoding")

        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        assert [entry["path"] for entry in logged] == ["/geocoding"]

    def test_honors_incoming_request_id(self, client):
        """If caller sends X-Request-ID, echo it back unchanged."""
        custom_id = "batch-2026-10-19-001"
        response = client.get("/geocoding", headers={"x-request-id": custom_id})
        assert response.headers["X-Request-ID"] == custom_id


    def test_slow_requests_log_as_warning(self, client, monkeypatch):
        warned = []
        monkeypatch.setattr("middleware.request_id.SLOW_REQUEST_MS", 0.0)
        monkeypatch.setattr("middleware.request_id.logger.warning", lambda *a, **kw: warned.append(kw))

        client.get("/geocoding")

        assert warned[0]["slow"] is True
        assert warned[0]["path"] == "/geocoding"
