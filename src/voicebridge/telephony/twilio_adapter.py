"""
Twilio telephony provider adapter.

Talks to the Twilio REST API (Verify v2 and Voice 2010-04-01) with httpx.
"""

from __future__ import annotations

import hashlib
import hmac
from base64 import b64encode
from typing import Any, Mapping

import httpx

from voicebridge.shared.exceptions import CarrierError, ConfigurationError
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import TelephonyConfig, get_telephony_config
from voicebridge.telephony.interface import (
    CallCreateRequest,
    CallCreateResponse,
    TelephonyProvider,
    VerificationCheckResponse,
    VerificationResponse,
)

logger = get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
TWILIO_VERIFY_BASE = "https://verify.twilio.com/v2"


class TwilioAdapter(TelephonyProvider):
    """Twilio telephony provider adapter.

    An ``httpx.Client`` may be injected; otherwise one is created lazily and
    owned (and closed) by the adapter.
    """

    def __init__(
        self,
        config: TelephonyConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or get_telephony_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(30.0))
        return self._http_client

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _get_auth(self) -> tuple[str, str]:
        return (self._config.twilio_account_sid, self._config.twilio_auth_token)

    def _get_api_url(self, endpoint: str) -> str:
        account_sid = self._config.twilio_account_sid
        return f"{TWILIO_API_BASE}/Accounts/{account_sid}{endpoint}"

    def _get_verify_url(self, endpoint: str) -> str:
        service_sid = self._config.twilio_verify_service_sid
        if not service_sid:
            raise ConfigurationError("Twilio Verify service not configured.")
        return f"{TWILIO_VERIFY_BASE}/Services/{service_sid}{endpoint}"

    def _post(self, url: str, data: Mapping[str, Any], operation: str) -> dict[str, Any]:
        """POST form data and return the decoded JSON body.

        Raises:
            CarrierError: On transport failure or any 4xx/5xx answer.
        """
        client = self._get_client()
        try:
            response = client.post(url, data=data, auth=self._get_auth())
        except httpx.HTTPError as e:
            logger.exception("HTTP error calling Twilio", extra={"operation": operation})
            raise CarrierError(message=f"HTTP error: {e!s}", error_code="HTTP_ERROR") from e

        if response.status_code >= 400:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"message": response.text}
            logger.error(
                "Twilio request failed",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "error": error_data,
                },
            )
            raise CarrierError(
                message=error_data.get("message") or f"{operation} failed",
                error_code=str(error_data.get("code", response.status_code)),
                provider_response=error_data,
            )

        return response.json() if response.content else {}

    def send_verification_sync(self, to: str, channel: str = "sms") -> VerificationResponse:
        url = self._get_verify_url("/Verifications")
        logger.info("Sending verification code", extra={"to": to, "channel": channel})
        data = self._post(url, {"To": to, "Channel": channel}, "send_verification")
        return VerificationResponse(
            sid=data.get("sid", ""),
            status=data.get("status", "pending"),
            raw_response=data,
        )

    def check_verification_sync(self, to: str, code: str) -> VerificationCheckResponse:
        url = self._get_verify_url("/VerificationCheck")
        data = self._post(url, {"To": to, "Code": code}, "check_verification")
        return VerificationCheckResponse(status=data.get("status", ""), raw_response=data)

    def create_call_sync(self, request: CallCreateRequest) -> CallCreateResponse:
        """Create an outbound call via Twilio."""
        payload = {
            "To": request.to,
            "From": request.from_number,
            "Url": request.control_url,
            "Method": request.control_method,
            "StatusCallback": request.status_callback_url,
            "StatusCallbackMethod": request.status_callback_method,
            "StatusCallbackEvent": list(request.status_callback_events),
        }

        logger.info(
            "Initiating Twilio call",
            extra={"to": request.to, "from_number": request.from_number},
        )

        data = self._post(self._get_api_url("/Calls.json"), payload, "create_call")
        if not data.get("sid"):
            logger.error("Twilio call created without a sid", extra={"response": data})
            raise CarrierError(
                message="Twilio did not return a call sid",
                error_code="MISSING_CALL_SID",
                provider_response=data,
            )
        return CallCreateResponse(
            provider_call_id=data["sid"],
            status=data.get("status", "queued"),
            raw_response=data,
        )

    def update_call_sync(self, provider_call_id: str, status: str) -> None:
        logger.info(
            "Updating Twilio call",
            extra={"provider_call_id": provider_call_id, "target_status": status},
        )
        self._post(
            self._get_api_url(f"/Calls/{provider_call_id}.json"),
            {"Status": status},
            "update_call",
        )

    def validate_webhook_signature(
        self,
        url: str,
        params: Mapping[str, str],
        signature: str,
    ) -> bool:
        if not self._config.twilio_auth_token:
            logger.warning("No auth token configured, skipping signature validation")
            return True

        data_str = url
        for key in sorted(params.keys()):
            data_str += key + str(params[key])

        computed = hmac.new(
            self._config.twilio_auth_token.encode("utf-8"),
            data_str.encode("utf-8"),
            hashlib.sha1,
        ).digest()

        computed_sig = b64encode(computed).decode("utf-8")
        return hmac.compare_digest(computed_sig, signature or "")
