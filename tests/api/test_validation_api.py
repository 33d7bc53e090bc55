"""
HTTP-level tests for the /api/validation routes.
"""

import pytest
from httpx import AsyncClient

from conftest import TEST_API_KEY, make_config
from checkout_guard.settings import Config

BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0"
ADMIN_HEADERS = {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def app_config() -> Config:
    config = make_config(
        config_allowed_hosts=["shop.example.com"],
        recaptcha_site_key="site-key",
    )
    config.api.api_key = TEST_API_KEY
    return config


async def _validate(client: AsyncClient, session_id: str, **headers: str) -> dict:
    response = await client.post(
        "/api/validation/validate-user",
        json={"sessionId": session_id, "cartValue": 4999, "cartItems": 2},
        headers={"User-Agent": BROWSER_UA, **headers},
    )
    assert response.status_code == 200
    return response.json()


class TestValidateUser:
    @pytest.mark.asyncio
    async def test_loopback_peer_is_allowed(self, client: AsyncClient):
        body = await _validate(client, "session-1")

        assert body["isValid"] is True
        assert body["riskScore"] == 0
        assert body["recommendation"] == "allow"
        assert body["requiresCaptcha"] is False
        assert body["blocked"] is False
        assert body["location"] == {"country": "United States", "city": "San Francisco"}
        assert body["validationId"]

    @pytest.mark.asyncio
    async def test_forwarded_vpn_client_is_challenged(self, client: AsyncClient):
        body = await _validate(
            client, "session-2", **{"X-Forwarded-For": "5.5.5.10, 10.0.0.1"}
        )

        assert body["riskScore"] == 30
        assert body["recommendation"] == "challenge"
        assert body["requiresCaptcha"] is True
        assert body["riskFactors"] == ["VPN detected"]

    @pytest.mark.asyncio
    async def test_user_agent_from_body_wins(self, client: AsyncClient):
        response = await client.post(
            "/api/validation/validate-user",
            json={"sessionId": "session-3", "userAgent": "curl/7.64"},
            headers={"User-Agent": BROWSER_UA, "X-Forwarded-For": "5.5.5.10"},
        )

        body = response.json()
        assert body["riskScore"] == 70
        assert body["blocked"] is True
        assert body["isValid"] is False

    @pytest.mark.asyncio
    async def test_missing_session_id(self, client: AsyncClient):
        response = await client.post("/api/validation/validate-user", json={"cartValue": 10})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request data"
        assert body["details"]


class TestCaptcha:
    @pytest.mark.asyncio
    async def test_mock_token_passes(self, client: AsyncClient):
        validation = await _validate(
            client, "session-c", **{"X-Forwarded-For": "5.5.5.10"}
        )

        response = await client.post(
            "/api/validation/captcha",
            json={
                "validationId": validation["validationId"],
                "captchaResponse": "mock-captcha-response-1699999999999",
                "captchaType": "mock",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "CAPTCHA verified successfully",
            "validationId": validation["validationId"],
        }

    @pytest.mark.asyncio
    async def test_unknown_validation(self, client: AsyncClient):
        response = await client.post(
            "/api/validation/captcha",
            json={"validationId": "nope", "captchaResponse": "token", "captchaType": "mock"},
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Validation record not found"}

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.post("/api/validation/captcha", json={"validationId": "x"})
        assert response.status_code == 400


class TestProceedCheckout:
    @pytest.mark.asyncio
    async def test_by_session(self, client: AsyncClient):
        await _validate(client, "session-p")

        response = await client.post(
            "/api/validation/proceed-checkout", json={"sessionId": "session-p"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "matched": True}

        stats = await client.get("/api/validation/stats", headers=ADMIN_HEADERS)
        assert stats.json()["proceedToCheckout"] == 1

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient):
        response = await client.post(
            "/api/validation/proceed-checkout", json={"sessionId": "ghost"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "matched": False}


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_stats_require_api_key(self, client: AsyncClient):
        response = await client.get("/api/validation/stats")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or missing API key"}

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient):
        await _validate(client, "s1")
        await _validate(client, "s2", **{"X-Forwarded-For": "5.5.5.10"})

        response = await client.get("/api/validation/stats", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["passed"] == 2
        assert body["failed"] == 0
        assert body["botCount"] == 0
        assert body["conversionRate"] == "0.00%"
        assert body["recentValidations"] == 2
        assert body["recent"]["total"] == 2

    @pytest.mark.asyncio
    async def test_recent(self, client: AsyncClient):
        first = await _validate(client, "s1")
        second = await _validate(client, "s2")

        response = await client.get(
            "/api/validation/recent", params={"limit": 1}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        items = response.json()
        assert len(items) == 1
        assert items[0]["id"] in {first["validationId"], second["validationId"]}
        assert items[0]["validationType"] == "ip_check"

    @pytest.mark.asyncio
    async def test_settings_roundtrip(self, client: AsyncClient):
        put = await client.put(
            "/api/validation/settings/challenge_threshold",
            json={"settingValue": {"score": 30}, "description": "Challenge cutoff"},
            headers=ADMIN_HEADERS,
        )
        assert put.status_code == 200

        response = await client.get(
            "/api/validation/settings/challenge_threshold", headers=ADMIN_HEADERS
        )
        body = response.json()
        assert body["settingKey"] == "challenge_threshold"
        assert body["settingValue"] == {"score": 30}
        assert body["description"] == "Challenge cutoff"

        missing = await client.get("/api/validation/settings/unknown", headers=ADMIN_HEADERS)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_purge_geolocations(self, client: AsyncClient):
        response = await client.post("/api/validation/geolocations/purge", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"deleted": 0}


class TestWidgetConfig:
    @pytest.mark.asyncio
    async def test_allowed_origin(self, client: AsyncClient):
        response = await client.get(
            "/api/validation/config", headers={"Origin": "https://shop.example.com"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "siteKey": "site-key",
            "apiBaseUrl": "https://test/api/validation",
        }

    @pytest.mark.asyncio
    async def test_missing_headers(self, client: AsyncClient):
        response = await client.get("/api/validation/config")

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied - missing headers"}

    @pytest.mark.asyncio
    async def test_unlisted_referer(self, client: AsyncClient):
        response = await client.get(
            "/api/validation/config", headers={"Referer": "https://other.example.org/cart"}
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
