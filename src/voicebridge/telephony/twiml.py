"""
TwiML builders.

Call-control intents (dial a target, speak a message) rendered to the XML
document Twilio's call engine consumes, via the Twilio helper library.
"""

from __future__ import annotations

from typing import Iterable

from twilio.twiml.voice_response import VoiceResponse

TWIML_MEDIA_TYPE = "text/xml"


def say(message: str, language: str | None = None) -> str:
    """A document that only speaks ``message``."""
    response = VoiceResponse()
    response.say(message, language=language)
    return str(response)


def dial_client(
    identity: str,
    *,
    timeout: int | None = None,
    fallback_message: str | None = None,
    language: str | None = None,
) -> str:
    """Ring a softphone identity, then speak ``fallback_message`` if nobody answers."""
    response = VoiceResponse()
    dial = response.dial(timeout=timeout)
    dial.client(identity)
    if fallback_message:
        response.say(fallback_message, language=language)
    return str(response)


def dial_number(
    phone_number: str,
    *,
    caller_id: str | None = None,
    status_callback: str | None = None,
    status_callback_events: Iterable[str] | None = None,
    status_callback_method: str | None = None,
) -> str:
    """Bridge to a PSTN number; the child leg reports to ``status_callback``."""
    response = VoiceResponse()
    dial = response.dial(caller_id=caller_id)
    if status_callback:
        events = " ".join(status_callback_events) if status_callback_events else None
        dial.number(
            phone_number,
            status_callback=status_callback,
            status_callback_event=events,
            status_callback_method=status_callback_method,
        )
    else:
        dial.number(phone_number)
    return str(response)


def dial(phone_number: str) -> str:
    """Plain ``<Dial>number</Dial>`` for REST-created calls."""
    response = VoiceResponse()
    response.dial(phone_number)
    return str(response)
