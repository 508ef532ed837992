"""API tests for the health endpoint (external services mocked)."""

import pytest
from unittest.mock import AsyncMock, patch


@pytest.fixture
def redis_ok():
    with patch("posty.core.health.check_redis", AsyncMock(return_value={"status": "healthy"})):
        yield


class TestHealth:

    @pytest.mark.asyncio
    async def test_openai_outage_is_degraded_not_down(self, client, redis_ok, failing_vision_client):
        with patch("posty.modules.analyzer.openai_client.VisionClient", return_value=failing_vision_client):
            response = await client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "Posty"
        assert body["components"]["database"]["status"] == "healthy"
        assert body["components"]["openai_api"]["status"] == "warning"
        assert body["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_database_down_is_503(self, client, redis_ok):
        database_down = AsyncMock(return_value={"status": "unhealthy", "error": "connection refused"})
        with patch("posty.core.health.check_database", database_down):
            response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_never_reports_secret_values(self, client, redis_ok):
        with patch("posty.core.health.check_openai_api", AsyncMock(return_value={"status": "healthy"})):
            response = await client.get("/api/health")

        assert "test-secret-key-for-jwt-signing" not in response.text
        assert response.json()["components"]["environment"]["missing_required"] == []


class TestRedisCheck:

    @pytest.mark.asyncio
    async def test_unreachable_redis_is_warning(self):
        from posty.core.health import check_redis

        redis_client = AsyncMock()
        redis_client.ping.side_effect = ConnectionError("Connection refused")
        with patch("posty.core.health.redis.from_url", return_value=redis_client) as from_url:
            result = await check_redis()

        assert result["status"] == "warning"
        assert "Connection refused" in result["error"]
        assert from_url.call_args.kwargs["socket_connect_timeout"] == 2
        redis_client.close.assert_awaited_once()
