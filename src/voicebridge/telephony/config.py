"""
Telephony provider configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported telephony provider types."""

    TWILIO = "twilio"
    MOCK = "mock"


# Webhook paths; the public URL is webhook_base_url + path.
TWIML_PATH = "/api/twilio/voice/twiml"
STATUS_CALLBACK_PATH = "/api/twilio/voice/status-callback"
INCOMING_PATH = "/api/twilio/voice/incoming"
OUTGOING_PATH = "/api/twilio/voice/outgoing"


class TelephonyConfig(BaseSettings):
    """Telephony provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TELEPHONY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider selection
    provider_type: ProviderType = Field(default=ProviderType.TWILIO)

    # REST credentials
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_from_number: str = Field(default="", description="Shared carrier-owned caller ID")

    # Verify
    twilio_verify_service_sid: str = Field(default="")

    # Client SDK signaling (access tokens)
    twilio_api_key_sid: str = Field(default="")
    twilio_api_key_secret: str = Field(default="")
    twilio_twiml_app_sid: str = Field(default="")

    use_shared_number: bool = Field(
        default=False,
        description="Dial out with twilio_from_number instead of the principal's verified number.",
    )

    # Webhook base URL (HTTP) used for Twilio Url/StatusCallback
    webhook_base_url: str = Field(default="http://localhost:8000")
    validate_webhook_signatures: bool = Field(default=False)

    # Call control
    dial_timeout_seconds: int = Field(default=20, ge=5, le=600)
    client_identity_prefix: str = Field(default="client")
    token_ttl_seconds: int = Field(default=3600, ge=60, le=86400)

    say_language: str = Field(default="en-US")
    message_configuration_error: str = Field(
        default="There was an error configuring the call. Please try again later."
    )
    message_invalid_number: str = Field(
        default="The number you have dialed is not registered. Goodbye."
    )
    message_user_unavailable: str = Field(
        default="The person you are calling is not available right now. Please try again later."
    )
    message_user_not_found: str = Field(
        default="We could not find a verified account for this call. Goodbye."
    )

    def get_webhook_url(self, path: str = STATUS_CALLBACK_PATH) -> str:
        base = self.webhook_base_url.rstrip("/")
        return f"{base}{path}"

    @property
    def signaling_configured(self) -> bool:
        return all(
            (
                self.twilio_account_sid,
                self.twilio_api_key_sid,
                self.twilio_api_key_secret,
                self.twilio_twiml_app_sid,
            )
        )


def get_telephony_config() -> TelephonyConfig:
    return TelephonyConfig()
