"""Tests for call initiation, cancellation and history."""

import pytest
from sqlalchemy import func, select

from voicebridge.calls.models import CallRecord
from voicebridge.calls.repository import CallRecordRepository, CarrierIdConflictError
from voicebridge.calls.service import CallService
from voicebridge.shared.exceptions import (
    CarrierError,
    ConfigurationError,
    NotFoundError,
    NotVerifiedError,
)
from voicebridge.telephony.interface import STATUS_CALLBACK_EVENTS


@pytest.fixture
def service(db_session, mock_provider, telephony_config) -> CallService:
    return CallService(session=db_session, provider=mock_provider, config=telephony_config)


async def _record_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(CallRecord))).scalar_one()


class TestPlaceCall:
    @pytest.mark.asyncio
    async def test_success_stores_carrier_sid(
        self, service, mock_provider, db_session, make_phone
    ) -> None:
        phone = await make_phone(1, "+14155551234")
        mock_provider.configure_call(status="queued", sid="CA123")

        result = await service.place_call(1, "+15551112222")

        assert result["call_sid"] == "CA123"
        record = (await db_session.execute(select(CallRecord))).scalar_one()
        assert result["log_id"] == record.id
        assert record.twilio_call_sid == "CA123"
        assert record.status == "queued"
        assert record.user_id == 1
        assert record.phone_number_id == phone.id
        assert record.destination_number == "+15551112222"
        assert record.direction == "outbound-api"

    @pytest.mark.asyncio
    async def test_carrier_request_shape(
        self, service, mock_provider, make_phone
    ) -> None:
        await make_phone(1, "+14155551234")

        await service.place_call(1, "+15551112222")

        request = mock_provider.get_last_call()
        assert request is not None
        assert request.to == "+15551112222"
        assert request.from_number == "+14155551234"
        assert request.control_url == "https://example.com/api/twilio/voice/twiml"
        assert request.status_callback_url == "https://example.com/api/twilio/voice/status-callback"
        assert request.control_method == "POST"
        assert request.status_callback_method == "POST"
        assert request.status_callback_events == STATUS_CALLBACK_EVENTS

    @pytest.mark.asyncio
    async def test_shared_number_caller_id(
        self, db_session, mock_provider, telephony_config, make_phone
    ) -> None:
        await make_phone(1, "+14155551234")
        config = telephony_config.model_copy(update={"use_shared_number": True})
        service = CallService(session=db_session, provider=mock_provider, config=config)

        await service.place_call(1, "+15551112222")

        assert mock_provider.get_last_call().from_number == "+14155550000"

    @pytest.mark.asyncio
    async def test_shared_number_missing_is_configuration_error(
        self, db_session, mock_provider, telephony_config, make_phone
    ) -> None:
        await make_phone(1, "+14155551234")
        config = telephony_config.model_copy(
            update={"use_shared_number": True, "twilio_from_number": ""}
        )
        service = CallService(session=db_session, provider=mock_provider, config=config)

        with pytest.raises(ConfigurationError):
            await service.place_call(1, "+15551112222")

        assert mock_provider.calls == []

    @pytest.mark.asyncio
    async def test_unverified_principal_is_refused(
        self, service, mock_provider, db_session, make_phone
    ) -> None:
        await make_phone(1, "+14155551234", verified=False)

        with pytest.raises(NotVerifiedError):
            await service.place_call(1, "+15551112222")

        assert mock_provider.calls == []
        assert await _record_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_principal_without_number_is_refused(
        self, service, mock_provider, db_session
    ) -> None:
        with pytest.raises(NotVerifiedError):
            await service.place_call(1, "+15551112222")

        assert mock_provider.calls == []
        assert await _record_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_carrier_failure_keeps_failed_record(
        self, service, mock_provider, db_session, make_phone
    ) -> None:
        await make_phone(1, "+14155551234")
        mock_provider.configure_failure("create_call", "The 'To' number is not valid", "21211")

        with pytest.raises(CarrierError) as exc_info:
            await service.place_call(1, "+15551112222")

        assert exc_info.value.message == "Could not initiate call: The 'To' number is not valid"
        record = (await db_session.execute(select(CallRecord))).scalar_one()
        assert record.status == "failed"
        assert record.error_message == "The 'To' number is not valid"
        assert record.twilio_call_sid is None


class TestCancelCall:
    @pytest.mark.asyncio
    async def test_active_call_is_completed(
        self, service, mock_provider, make_phone
    ) -> None:
        await make_phone(1, "+14155551234")
        mock_provider.configure_call(status="in-progress", sid="CA_LIVE")
        await service.place_call(1, "+15551112222")

        await service.cancel_call(1, "CA_LIVE")

        assert mock_provider.updates == [("CA_LIVE", "completed")]

    @pytest.mark.asyncio
    async def test_terminal_call_is_not_sent_to_carrier(
        self, service, mock_provider, db_session
    ) -> None:
        db_session.add(
            CallRecord(user_id=1, destination_number="+1555", twilio_call_sid="CA_DONE", status="completed")
        )
        await db_session.commit()

        await service.cancel_call(1, "CA_DONE")
        await service.cancel_call(1, "CA_DONE")

        assert mock_provider.updates == []

    @pytest.mark.asyncio
    async def test_other_principals_call_is_not_found(
        self, service, mock_provider, db_session
    ) -> None:
        db_session.add(
            CallRecord(user_id=2, destination_number="+1555", twilio_call_sid="CA_OTHER", status="ringing")
        )
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await service.cancel_call(1, "CA_OTHER")

        assert mock_provider.updates == []

    @pytest.mark.asyncio
    async def test_unknown_call_is_not_found(self, service) -> None:
        with pytest.raises(NotFoundError):
            await service.cancel_call(1, "CA_MISSING")

    @pytest.mark.asyncio
    async def test_carrier_failure(self, service, mock_provider, db_session) -> None:
        db_session.add(
            CallRecord(user_id=1, destination_number="+1555", twilio_call_sid="CA_LIVE", status="ringing")
        )
        await db_session.commit()
        mock_provider.configure_failure("update_call", "Call is not in-progress", "21220")

        with pytest.raises(CarrierError) as exc_info:
            await service.cancel_call(1, "CA_LIVE")

        assert exc_info.value.message.startswith("Could not end call")


class TestCallHistory:
    @pytest.mark.asyncio
    async def test_newest_first_and_scoped_to_principal(self, service, db_session) -> None:
        for sid, user_id in (("CA_1", 1), ("CA_2", 1), ("CA_3", 2), ("CA_4", 1)):
            db_session.add(CallRecord(user_id=user_id, destination_number="+1555", twilio_call_sid=sid))
            await db_session.flush()
        await db_session.commit()

        history = await service.list_call_history(1)

        assert [r.twilio_call_sid for r in history] == ["CA_4", "CA_2", "CA_1"]


class TestCarrierIdImmutability:
    @pytest.mark.asyncio
    async def test_reassigning_a_different_sid_is_rejected(self, db_session) -> None:
        repo = CallRecordRepository(db_session)
        record = await repo.create(user_id=1, destination_number="+1555")
        await repo.assign_carrier_call_id(record, "CA_FIRST", "queued")

        with pytest.raises(CarrierIdConflictError):
            await repo.assign_carrier_call_id(record, "CA_SECOND")

        assert record.twilio_call_sid == "CA_FIRST"

    @pytest.mark.asyncio
    async def test_apply_changes_never_touches_sid(self, db_session) -> None:
        repo = CallRecordRepository(db_session)
        record = await repo.create(user_id=1, destination_number="+1555", twilio_call_sid="CA_FIRST")

        await repo.apply_changes(record, {"status": "ringing", "twilio_call_sid": "CA_OTHER"})

        assert record.twilio_call_sid == "CA_FIRST"
        assert record.status == "ringing"
