"""
Domain model for carrier call status callbacks.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from voicebridge.shared.exceptions import ValidationError


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CallStatusEvent(BaseModel):
    """A status callback, parsed from Twilio's form fields.

    Timing and price fields are kept as the raw strings the carrier sent;
    the reconciler decides which of them parse.
    """

    model_config = ConfigDict(frozen=True)

    call_sid: str = Field(..., description="CallSid of the reporting leg")
    parent_call_sid: str | None = Field(default=None, description="ParentCallSid for child legs")
    call_status: str = Field(..., description="Raw carrier status")
    start_time: str | None = None
    end_time: str | None = None
    call_duration: str | None = None
    price: str | None = None
    error_message: str | None = None
    timestamp: str | None = Field(default=None, description="Carrier event time, logged only")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CallStatusEvent":
        """Build an event from a webhook payload.

        Raises:
            ValidationError: ``CallSid`` or ``CallStatus`` is missing.
        """
        call_sid = _clean(payload.get("CallSid"))
        call_status = _clean(payload.get("CallStatus"))
        if call_sid is None or call_status is None:
            raise ValidationError(
                "Status callback missing CallSid or CallStatus",
                details={"keys": sorted(payload.keys())},
            )
        return cls(
            call_sid=call_sid,
            parent_call_sid=_clean(payload.get("ParentCallSid")),
            call_status=call_status,
            start_time=_clean(payload.get("StartTime")),
            end_time=_clean(payload.get("EndTime")),
            call_duration=_clean(payload.get("CallDuration")),
            price=_clean(payload.get("Price")),
            error_message=_clean(payload.get("ErrorMessage")),
            timestamp=_clean(payload.get("Timestamp")),
        )
