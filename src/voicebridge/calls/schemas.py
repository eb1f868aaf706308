"""
Pydantic schemas for call endpoints.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PlaceCallRequest(BaseModel):
    destination_number: str = Field(..., min_length=1, max_length=64, description="Number to dial")


class PlaceCallResponse(BaseModel):
    message: str = Field(default="Call initiated.")
    call_sid: str = Field(..., description="Carrier call identifier")
    log_id: int = Field(..., description="CallRecord ID")


class EndCallResponse(BaseModel):
    message: str = Field(default="Call end requested.")
    call_sid: str


class CallRecordResponse(BaseModel):
    """One entry of the principal's call history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    destination_number: str
    twilio_call_sid: str | None = None
    direction: str
    status: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = None
    price: Decimal | None = None
    error_message: str | None = None
    created_at: datetime


class CallHistoryResponse(BaseModel):
    calls: list[CallRecordResponse] = Field(default_factory=list)


class VoiceTokenResponse(BaseModel):
    token: str = Field(..., description="Signed client SDK access token")
    identity: str = Field(..., description="Softphone identity")
