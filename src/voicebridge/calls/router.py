"""
Call API router: place, end and list calls, and issue softphone tokens.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.auth.middleware import CurrentUserDep
from voicebridge.calls.schemas import (
    CallHistoryResponse,
    CallRecordResponse,
    EndCallResponse,
    PlaceCallRequest,
    PlaceCallResponse,
    VoiceTokenResponse,
)
from voicebridge.calls.service import CallService
from voicebridge.shared.database import get_db_session
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import TelephonyConfig
from voicebridge.telephony.factory import get_telephony_config, get_telephony_provider
from voicebridge.telephony.interface import TelephonyProvider
from voicebridge.telephony.signaling import SignalingTokenService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["calls"])


def get_call_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> CallService:
    """Dependency for the call service."""
    return CallService(session=session, provider=provider, config=config)


def get_signaling_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> SignalingTokenService:
    """Dependency for the softphone token service."""
    return SignalingTokenService(session=session, config=config)


CallServiceDep = Annotated[CallService, Depends(get_call_service)]


@router.post(
    "/call",
    response_model=PlaceCallResponse,
    responses={
        400: {"description": "Phone number not registered or verified"},
        502: {"description": "Carrier refused the call"},
    },
)
async def place_call(
    body: PlaceCallRequest,
    current_user: CurrentUserDep,
    service: CallServiceDep,
) -> PlaceCallResponse:
    """Dial ``destination_number`` from the principal's verified number."""
    result = await service.place_call(current_user.id, body.destination_number)
    return PlaceCallResponse(call_sid=result["call_sid"], log_id=result["log_id"])


@router.post("/call/{call_sid}/end", response_model=EndCallResponse)
async def end_call(
    call_sid: str,
    current_user: CurrentUserDep,
    service: CallServiceDep,
) -> EndCallResponse:
    await service.cancel_call(current_user.id, call_sid)
    return EndCallResponse(call_sid=call_sid)


@router.get("/user/call-logs", response_model=CallHistoryResponse)
async def list_call_logs(
    current_user: CurrentUserDep,
    service: CallServiceDep,
) -> CallHistoryResponse:
    records = await service.list_call_history(current_user.id)
    return CallHistoryResponse(calls=[CallRecordResponse.model_validate(r) for r in records])


@router.get("/voice/token", response_model=VoiceTokenResponse)
async def voice_token(
    current_user: CurrentUserDep,
    service: Annotated[SignalingTokenService, Depends(get_signaling_service)],
) -> VoiceTokenResponse:
    """Issue a Twilio Voice SDK access token for the principal's softphone."""
    result = await service.issue_token(current_user.id)
    return VoiceTokenResponse(**result)
