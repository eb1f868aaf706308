"""
Phone number registration API router.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.auth.middleware import CurrentUserDep
from voicebridge.phones.schemas import (
    DeletePhoneResponse,
    PhoneStatusResponse,
    RegisterPhoneRequest,
    RegisterPhoneResponse,
    VerifyPhoneRequest,
    VerifyPhoneResponse,
)
from voicebridge.phones.service import VerificationService
from voicebridge.shared.database import get_db_session
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import TelephonyConfig
from voicebridge.telephony.factory import get_telephony_config, get_telephony_provider
from voicebridge.telephony.interface import TelephonyProvider

logger = get_logger(__name__)

router = APIRouter(prefix="/api/user/phone", tags=["phone"])


def get_verification_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> VerificationService:
    """Dependency for the verification service."""
    return VerificationService(session=session, provider=provider, config=config)


VerificationServiceDep = Annotated[VerificationService, Depends(get_verification_service)]


@router.post(
    "/register-request",
    response_model=RegisterPhoneResponse,
    responses={
        422: {"description": "Invalid phone number"},
        502: {"description": "Carrier refused to send the code"},
    },
)
async def register_phone(
    body: RegisterPhoneRequest,
    current_user: CurrentUserDep,
    service: VerificationServiceDep,
) -> RegisterPhoneResponse:
    """Send a verification code and register the number as unverified."""
    logger.info("Phone registration requested", extra={"user_id": current_user.id})
    result = await service.request_verification(current_user.id, body.phone_number)
    return RegisterPhoneResponse(**result)


@router.post(
    "/verify",
    response_model=VerifyPhoneResponse,
    responses={
        400: {"description": "Invalid verification code"},
        404: {"description": "No phone number registered"},
    },
)
async def verify_phone(
    body: VerifyPhoneRequest,
    current_user: CurrentUserDep,
    service: VerificationServiceDep,
) -> VerifyPhoneResponse:
    result = await service.confirm_verification(current_user.id, body.code)
    return VerifyPhoneResponse(verified=result["verified"])


@router.get("", response_model=PhoneStatusResponse)
async def get_phone(
    current_user: CurrentUserDep,
    service: VerificationServiceDep,
) -> PhoneStatusResponse:
    return PhoneStatusResponse(**await service.get_phone_status(current_user.id))


@router.post("/delete", response_model=DeletePhoneResponse)
@router.delete("", response_model=DeletePhoneResponse)
async def delete_phone(
    current_user: CurrentUserDep,
    service: VerificationServiceDep,
) -> DeletePhoneResponse:
    deleted = await service.delete_phone_number(current_user.id)
    message = "Phone number deleted successfully." if deleted else "No phone number registered."
    return DeletePhoneResponse(message=message, deleted=deleted)
