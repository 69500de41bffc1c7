import pytest


class TestHealth:
    @pytest.mark.asyncio
    async def test_should_report_dependencies(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["redis"] == "healthy"
        assert data["status"] in ("healthy", "degraded")
        assert "x-request-id" in response.headers

    @pytest.mark.asyncio
    async def test_should_serve_banner(self, test_client):
        response = await test_client.get("/api")

        assert response.status_code == 200
        assert response.json()["status"] == "running"
