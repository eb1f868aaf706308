"""
Telephony provider interface definition.

The carrier is consumed as one capability object: SMS verification, outbound
call creation/update and webhook signature validation. Concrete providers
implement the ``*_sync`` methods; the async entrypoints run them in a worker
thread so blocking HTTP never stalls the event loop.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping

import anyio

APPROVED = "approved"

# Status callback events subscribed to on every outbound call.
STATUS_CALLBACK_EVENTS: tuple[str, ...] = (
    "initiated",
    "ringing",
    "answered",
    "completed",
    "failed",
    "busy",
    "no-answer",
)


@dataclass(frozen=True)
class VerificationResponse:
    """Result of sending a one-time code."""

    sid: str
    status: str = "pending"
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationCheckResponse:
    """Result of checking a one-time code."""

    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def approved(self) -> bool:
        return self.status == APPROVED


@dataclass(frozen=True)
class CallCreateRequest:
    """Request to create an outbound call."""

    to: str
    from_number: str
    control_url: str
    status_callback_url: str
    control_method: str = "POST"
    status_callback_method: str = "POST"
    status_callback_events: tuple[str, ...] = STATUS_CALLBACK_EVENTS


@dataclass(frozen=True)
class CallCreateResponse:
    """Response from call creation."""

    provider_call_id: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


class TelephonyProvider(ABC):
    """Abstract interface for telephony carriers."""

    async def send_verification(self, to: str, channel: str = "sms") -> VerificationResponse:
        return await anyio.to_thread.run_sync(self.send_verification_sync, to, channel)

    async def check_verification(self, to: str, code: str) -> VerificationCheckResponse:
        return await anyio.to_thread.run_sync(self.check_verification_sync, to, code)

    async def create_call(self, request: CallCreateRequest) -> CallCreateResponse:
        return await anyio.to_thread.run_sync(self.create_call_sync, request)

    async def update_call(self, provider_call_id: str, status: str) -> None:
        await anyio.to_thread.run_sync(self.update_call_sync, provider_call_id, status)

    def close(self) -> None:
        """Release transport resources held by the provider."""

    @abstractmethod
    def send_verification_sync(self, to: str, channel: str = "sms") -> VerificationResponse:
        """Send a one-time code to ``to`` over ``channel``."""
        ...

    @abstractmethod
    def check_verification_sync(self, to: str, code: str) -> VerificationCheckResponse:
        """Check a one-time code previously sent to ``to``."""
        ...

    @abstractmethod
    def create_call_sync(self, request: CallCreateRequest) -> CallCreateResponse:
        """Create an outbound call."""
        ...

    @abstractmethod
    def update_call_sync(self, provider_call_id: str, status: str) -> None:
        """Update a live call (e.g. status=completed to hang up)."""
        ...

    @abstractmethod
    def validate_webhook_signature(
        self,
        url: str,
        params: Mapping[str, str],
        signature: str,
    ) -> bool:
        """Validate webhook signature for authenticity."""
        ...
