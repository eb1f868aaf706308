"""
Mock telephony provider adapter.

Used for local development (TELEPHONY_PROVIDER_TYPE=mock) and injected as the
carrier test double. Records every request and can be told to fail.
"""

from typing import Any, Mapping

from voicebridge.shared.exceptions import CarrierError
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.interface import (
    APPROVED,
    CallCreateRequest,
    CallCreateResponse,
    TelephonyProvider,
    VerificationCheckResponse,
    VerificationResponse,
)

logger = get_logger(__name__)


class MockTelephonyAdapter(TelephonyProvider):
    """Mock telephony provider for testing."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._verifications: list[tuple[str, str]] = []
        self._checks: list[tuple[str, str]] = []
        self._calls: list[CallCreateRequest] = []
        self._updates: list[tuple[str, str]] = []
        self._next_id: int = 1
        self._failures: dict[str, tuple[str, str]] = {}
        self._check_status: str = APPROVED
        self._call_status: str = "queued"
        self._next_call_sid: str | None = None

    def configure_failure(
        self,
        operation: str,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
    ) -> None:
        """Make ``operation`` (send_verification, check_verification,
        create_call, update_call) raise ``CarrierError``."""
        self._failures[operation] = (error_message, error_code)

    def configure_check_status(self, status: str) -> None:
        self._check_status = status

    def configure_call(self, status: str = "queued", sid: str | None = None) -> None:
        self._call_status = status
        self._next_call_sid = sid

    @property
    def verifications(self) -> list[tuple[str, str]]:
        return self._verifications.copy()

    @property
    def checks(self) -> list[tuple[str, str]]:
        return self._checks.copy()

    @property
    def calls(self) -> list[CallCreateRequest]:
        return self._calls.copy()

    @property
    def updates(self) -> list[tuple[str, str]]:
        return self._updates.copy()

    def get_last_call(self) -> CallCreateRequest | None:
        return self._calls[-1] if self._calls else None

    def _maybe_fail(self, operation: str) -> None:
        failure = self._failures.get(operation)
        if failure is not None:
            message, code = failure
            raise CarrierError(message=message, error_code=code)

    def _new_sid(self, prefix: str) -> str:
        sid = f"{prefix}MOCK{self._next_id:06d}"
        self._next_id += 1
        return sid

    def send_verification_sync(self, to: str, channel: str = "sms") -> VerificationResponse:
        logger.info("Mock: sending verification", extra={"to": to, "channel": channel})
        self._maybe_fail("send_verification")
        self._verifications.append((to, channel))
        return VerificationResponse(sid=self._new_sid("VE"), raw_response={"mock": True})

    def check_verification_sync(self, to: str, code: str) -> VerificationCheckResponse:
        self._maybe_fail("check_verification")
        self._checks.append((to, code))
        return VerificationCheckResponse(status=self._check_status, raw_response={"mock": True})

    def create_call_sync(self, request: CallCreateRequest) -> CallCreateResponse:
        logger.info("Mock: creating call", extra={"to": request.to})
        self._maybe_fail("create_call")
        self._calls.append(request)

        sid = self._next_call_sid or self._new_sid("CA")
        self._next_call_sid = None
        raw: dict[str, Any] = {"mock": True, "sid": sid, "status": self._call_status}
        return CallCreateResponse(provider_call_id=sid, status=self._call_status, raw_response=raw)

    def update_call_sync(self, provider_call_id: str, status: str) -> None:
        self._maybe_fail("update_call")
        self._updates.append((provider_call_id, status))

    def validate_webhook_signature(
        self,
        url: str,
        params: Mapping[str, str],
        signature: str,
    ) -> bool:
        return True
