"""
Pydantic schemas for phone number registration and verification.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class RegisterPhoneRequest(BaseModel):
    """Request a one-time code for a phone number."""

    phone_number: str = Field(..., min_length=1, max_length=32, description="Phone number, E.164")


class RegisterPhoneResponse(BaseModel):
    message: str = Field(default="Verification code sent successfully.")
    verification_sid: str = Field(..., description="Carrier verification identifier")
    phone_number: str = Field(..., description="Normalized E.164 number")


class VerifyPhoneRequest(BaseModel):
    """Confirm a one-time code."""

    code: str = Field(..., description="6-digit verification code")


class VerifyPhoneResponse(BaseModel):
    message: str = Field(default="Phone number verified successfully.")
    verified: bool = True


class PhoneStatusResponse(BaseModel):
    """Current phone number registration for the principal."""

    id: int | None = Field(default=None, description="PhoneNumber ID")
    phone_number: str | None = Field(default=None, description="Registered number")
    is_verified: bool = Field(default=False)
    verified_at: datetime | None = Field(default=None)


class DeletePhoneResponse(BaseModel):
    message: str
    deleted: bool
