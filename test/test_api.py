"""HTTP tests for the principal-facing API."""

import pytest
from sqlalchemy import select

from voicebridge.calls.models import CallRecord
from voicebridge.phones.models import PhoneNumber


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client) -> None:
        response = await client.get("/api/user/phone")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "MISSING_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client) -> None:
        response = await client.get("/api/user/phone", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_TOKEN"


class TestPhoneEndpoints:
    @pytest.mark.asyncio
    async def test_register_and_verify(self, client, auth_headers, mock_provider) -> None:
        headers = auth_headers(1)

        response = await client.post(
            "/api/user/phone/register-request",
            json={"phone_number": "+14155551234"},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Verification code sent successfully."
        assert body["phone_number"] == "+14155551234"

        response = await client.post("/api/user/phone/verify", json={"code": "123456"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["verified"] is True

        response = await client.get("/api/user/phone", headers=headers)
        assert response.json()["is_verified"] is True
        assert mock_provider.checks == [("+14155551234", "123456")]

    @pytest.mark.asyncio
    async def test_invalid_number_is_422(self, client, auth_headers) -> None:
        response = await client.post(
            "/api/user/phone/register-request",
            json={"phone_number": "12345"},
            headers=auth_headers(1),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_missing_body_field_is_422(self, client, auth_headers) -> None:
        response = await client.post(
            "/api/user/phone/register-request", json={}, headers=auth_headers(1)
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["message"] == "Request validation failed"
        assert detail["errors"]

    @pytest.mark.asyncio
    async def test_rejected_code_is_400(self, client, auth_headers, make_phone, mock_provider) -> None:
        await make_phone(1, "+14155551234", verified=False)
        mock_provider.configure_check_status("pending")

        response = await client.post("/api/user/phone/verify", json={"code": "111111"}, headers=auth_headers(1))

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "code": "INVALID_CODE",
            "message": "Invalid verification code.",
        }

    @pytest.mark.asyncio
    async def test_carrier_error_is_502(self, client, auth_headers, mock_provider) -> None:
        mock_provider.configure_failure("send_verification", "Max send attempts reached", "60203")

        response = await client.post(
            "/api/user/phone/register-request",
            json={"phone_number": "+14155551234"},
            headers=auth_headers(1),
        )

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["code"] == "CARRIER_ERROR"
        assert detail["carrier_error_code"] == "60203"
        assert "Max send attempts reached" in detail["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [("POST", "/api/user/phone/delete"), ("DELETE", "/api/user/phone")])
    async def test_delete(self, client, auth_headers, make_phone, session_factory, method, path) -> None:
        await make_phone(1, "+14155551234")

        response = await client.request(method, path, headers=auth_headers(1))

        assert response.status_code == 200
        assert response.json()["deleted"] is True
        async with session_factory() as session:
            assert (await session.execute(select(PhoneNumber))).scalar_one_or_none() is None


class TestCallEndpoints:
    @pytest.mark.asyncio
    async def test_place_call(self, client, auth_headers, make_phone, mock_provider) -> None:
        await make_phone(1, "+14155551234")
        mock_provider.configure_call(sid="CA123")

        response = await client.post(
            "/api/call", json={"destination_number": "+15551112222"}, headers=auth_headers(1)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Call initiated."
        assert body["call_sid"] == "CA123"
        assert isinstance(body["log_id"], int)

    @pytest.mark.asyncio
    async def test_place_call_unverified(self, client, auth_headers, mock_provider) -> None:
        response = await client.post(
            "/api/call", json={"destination_number": "+15551112222"}, headers=auth_headers(1)
        )

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "User phone number not registered or verified."
        assert mock_provider.calls == []

    @pytest.mark.asyncio
    async def test_end_call(self, client, auth_headers, make_phone, mock_provider) -> None:
        await make_phone(1, "+14155551234")
        mock_provider.configure_call(sid="CA_LIVE")
        await client.post("/api/call", json={"destination_number": "+15551112222"}, headers=auth_headers(1))

        response = await client.post("/api/call/CA_LIVE/end", headers=auth_headers(1))

        assert response.status_code == 200
        assert mock_provider.updates == [("CA_LIVE", "completed")]

    @pytest.mark.asyncio
    async def test_end_someone_elses_call(self, client, auth_headers, make_phone, mock_provider) -> None:
        await make_phone(1, "+14155551234")
        mock_provider.configure_call(sid="CA_LIVE")
        await client.post("/api/call", json={"destination_number": "+15551112222"}, headers=auth_headers(1))

        response = await client.post("/api/call/CA_LIVE/end", headers=auth_headers(2))

        assert response.status_code == 404
        assert mock_provider.updates == []

    @pytest.mark.asyncio
    async def test_call_logs(self, client, auth_headers, make_phone, mock_provider) -> None:
        await make_phone(1, "+14155551234")
        for sid in ("CA_A", "CA_B"):
            mock_provider.configure_call(sid=sid)
            await client.post("/api/call", json={"destination_number": "+15551112222"}, headers=auth_headers(1))

        response = await client.get("/api/user/call-logs", headers=auth_headers(1))

        assert response.status_code == 200
        calls = response.json()["calls"]
        assert [c["twilio_call_sid"] for c in calls] == ["CA_B", "CA_A"]
        assert calls[0]["status"] == "queued"

        other = await client.get("/api/user/call-logs", headers=auth_headers(2))
        assert other.json()["calls"] == []

    @pytest.mark.asyncio
    async def test_voice_token(self, client, auth_headers, make_phone) -> None:
        await make_phone(1, "+14155551234")

        response = await client.get("/api/voice/token", headers=auth_headers(1))

        assert response.status_code == 200
        body = response.json()
        assert body["identity"] == "user_1"
        assert body["token"].count(".") == 2

    @pytest.mark.asyncio
    async def test_voice_token_unverified(self, client, auth_headers) -> None:
        response = await client.get("/api/voice/token", headers=auth_headers(1))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "PHONE_NOT_VERIFIED"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_and_correlation_id(self, client) -> None:
        response = await client.get("/health", headers={"X-Correlation-ID": "corr-123"})

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Correlation-ID"] == "corr-123"
