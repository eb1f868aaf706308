"""
FastAPI router for Twilio voice webhooks.

Key constraints:
- Twilio must always get a well-formed answer: status callbacks are ACKed even
  when they cannot be applied, call-control requests always get TwiML
- Payload is form fields merged with query parameters
- No authentication; optional X-Twilio-Signature check
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.shared.database import get_db_session
from voicebridge.shared.exceptions import ValidationError
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import (
    INCOMING_PATH,
    OUTGOING_PATH,
    STATUS_CALLBACK_PATH,
    TWIML_PATH,
    TelephonyConfig,
)
from voicebridge.telephony.factory import get_telephony_config, get_telephony_provider
from voicebridge.telephony.interface import TelephonyProvider
from voicebridge.telephony.twiml import TWIML_MEDIA_TYPE
from voicebridge.telephony.webhooks.events import CallStatusEvent
from voicebridge.telephony.webhooks.handler import CallbackReconciler
from voicebridge.telephony.webhooks.responder import CallControlResponder

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "X-Twilio-Signature"


async def _read_form(request: Request) -> dict[str, str]:
    if request.method != "POST":
        return {}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def _signed_url(request: Request, config: TelephonyConfig) -> str:
    url = config.get_webhook_url(request.url.path)
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


async def twilio_payload(
    request: Request,
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> dict[str, str]:
    """Collect the webhook payload, checking the signature when enabled."""
    form = await _read_form(request)

    if config.validate_webhook_signatures:
        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not provider.validate_webhook_signature(_signed_url(request, config), form, signature):
            logger.warning(
                "Rejected webhook with invalid signature",
                extra={"endpoint": request.url.path},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "INVALID_SIGNATURE", "message": "Invalid webhook signature"},
            )

    payload = dict(form)
    payload.update(dict(request.query_params))
    return payload


PayloadDep = Annotated[dict[str, str], Depends(twilio_payload)]


def get_reconciler(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CallbackReconciler:
    return CallbackReconciler(session=session)


def get_responder(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> CallControlResponder:
    return CallControlResponder(session=session, config=config)


ResponderDep = Annotated[CallControlResponder, Depends(get_responder)]


def _twiml_response(content: str) -> Response:
    return Response(content=content, media_type=TWIML_MEDIA_TYPE)


async def _respond(
    responder: CallControlResponder,
    session: AsyncSession,
    endpoint: str,
    build: Callable[[], Awaitable[str]],
) -> Response:
    try:
        return _twiml_response(await build())
    except Exception:
        logger.exception("Call-control webhook failed", extra={"endpoint": endpoint})
        await session.rollback()
        return _twiml_response(responder.failure_instruction())


@router.post(STATUS_CALLBACK_PATH)
async def status_callback(
    payload: PayloadDep,
    reconciler: Annotated[CallbackReconciler, Depends(get_reconciler)],
) -> dict[str, Any]:
    """Apply a call status callback. Always ACKs so Twilio does not retry."""
    try:
        event = CallStatusEvent.from_payload(payload)
    except ValidationError as e:
        logger.warning("Ignoring malformed status callback", extra={"error": e.message, **e.details})
        return {"message": "Callback received"}

    await reconciler.apply_status_event(event)
    return {"message": "Callback received"}


@router.api_route(TWIML_PATH, methods=["GET", "POST"])
async def generic_twiml(
    payload: PayloadDep,
    responder: ResponderDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> Response:
    async def build() -> str:
        return responder.generic_instruction(payload.get("To"))

    return await _respond(responder, session, TWIML_PATH, build)


@router.api_route(INCOMING_PATH, methods=["GET", "POST"])
async def incoming_call(
    payload: PayloadDep,
    responder: ResponderDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> Response:
    logger.info(
        "Incoming call webhook",
        extra={"call_sid": payload.get("CallSid"), "to": payload.get("To")},
    )

    async def build() -> str:
        return await responder.incoming_call_instruction(payload.get("To"))

    return await _respond(responder, session, INCOMING_PATH, build)


@router.api_route(OUTGOING_PATH, methods=["GET", "POST"])
async def outgoing_call(
    payload: PayloadDep,
    responder: ResponderDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> Response:
    logger.info(
        "Outgoing call webhook",
        extra={"call_sid": payload.get("CallSid"), "from": payload.get("From")},
    )

    async def build() -> str:
        return await responder.outgoing_call_instruction(
            payload.get("From"),
            payload.get("To"),
            payload.get("CallSid"),
        )

    return await _respond(responder, session, OUTGOING_PATH, build)
