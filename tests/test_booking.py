"""Tests for the two-step booking tool and contact id extraction."""

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_bridge.errors import (
    ClientInputError,
    UpstreamContractViolation,
    UpstreamTransportError,
)
from booking_bridge.models import BookingRequest
from booking_bridge.tools.booking import (
    CONTACT_ID_STRATEGIES,
    BookAppointmentTool,
    contact_id_from_field,
    contact_id_from_nested,
    contact_id_from_top_level,
    extract_contact_id,
)
from conftest import FakeProvider


def _request(**overrides) -> BookingRequest:
    data = {
        "name": "Mario Rossi",
        "email": "mario@example.com",
        "phone": "+393331234567",
        "startTime": "2025-10-07T09:00:00+02:00",
        "endTime": "2025-10-07T09:30:00+02:00",
    }
    data.update(overrides)
    return BookingRequest.model_validate(data)


# ── Contact id extraction ──────────────────────────────────────────


class TestExtractContactId:
    @pytest.mark.parametrize(
        "payload",
        [
            {"contact": {"id": "abc"}},
            {"id": "abc"},
            {"contactId": "abc"},
        ],
    )
    def test_each_shape(self, payload):
        assert extract_contact_id(payload) == "abc"

    def test_nested_wins_over_top_level(self):
        payload = {"contact": {"id": "nested"}, "id": "top", "contactId": "field"}
        assert extract_contact_id(payload) == "nested"

    def test_top_level_wins_over_field(self):
        assert extract_contact_id({"id": "top", "contactId": "field"}) == "top"

    def test_empty_values_fall_through(self):
        payload = {"contact": {"id": ""}, "id": None, "contactId": "field"}
        assert extract_contact_id(payload) == "field"

    def test_numeric_id(self):
        assert extract_contact_id({"id": 42}) == "42"

    @pytest.mark.parametrize(
        "payload", [None, [], "abc", {}, {"contact": "abc"}, {"id": True}]
    )
    def test_missing(self, payload):
        assert extract_contact_id(payload) is None

    def test_strategy_order(self):
        assert CONTACT_ID_STRATEGIES == (
            contact_id_from_nested,
            contact_id_from_top_level,
            contact_id_from_field,
        )


# ── Input validation ───────────────────────────────────────────────


class TestBookingValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"startTime": None},
            {"endTime": None},
            {"startTime": ""},
            {"startTime": None, "endTime": None},
        ],
    )
    async def test_missing_times_make_no_call(self, settings, overrides):
        provider = FakeProvider()
        tool = BookAppointmentTool(provider, settings)

        with pytest.raises(ClientInputError) as exc_info:
            await tool.execute(_request(**overrides))

        assert exc_info.value.status_code == 400
        assert provider.calls == []

    async def test_time_without_offset_rejected(self, settings):
        provider = FakeProvider()
        with pytest.raises(ClientInputError):
            await BookAppointmentTool(provider, settings).execute(
                _request(startTime="2025-10-07T09:00:00")
            )
        assert provider.calls == []

    async def test_unparseable_time_rejected(self, settings):
        provider = FakeProvider()
        with pytest.raises(ClientInputError):
            await BookAppointmentTool(provider, settings).execute(
                _request(endTime="half past nine")
            )
        assert provider.calls == []

    @pytest.mark.parametrize(
        "end", ["2025-10-07T09:00:00+02:00", "2025-10-07T08:30:00+02:00"]
    )
    async def test_end_not_after_start_rejected(self, settings, end):
        provider = FakeProvider()
        with pytest.raises(ClientInputError):
            await BookAppointmentTool(provider, settings).execute(
                _request(endTime=end)
            )
        assert provider.calls == []

    async def test_different_offsets_compared_as_instants(self, settings):
        provider = FakeProvider()
        # 07:15Z is after 09:00+02:00 (07:00Z)
        await BookAppointmentTool(provider, settings).execute(
            _request(endTime="2025-10-07T07:15:00Z")
        )
        assert provider.count("create_appointment") == 1


# ── Orchestration ──────────────────────────────────────────────────


class TestBookAppointmentTool:
    async def test_success(self, settings):
        provider = FakeProvider(
            upsert={"contact": {"id": "c-9"}},
            appointment={"id": "appt-7", "status": "booked"},
        )
        tool = BookAppointmentTool(provider, settings)

        result = await tool.execute(_request())

        assert result.ok is True
        assert result.appointment == {"id": "appt-7", "status": "booked"}
        assert [name for name, _ in provider.calls] == [
            "upsert_contact",
            "create_appointment",
        ]

    async def test_payloads(self, settings):
        provider = FakeProvider(upsert={"contactId": "c-3"})
        await BookAppointmentTool(provider, settings).execute(_request(title="Visit"))

        _, contact = provider.calls[0]
        assert contact == {
            "name": "Mario Rossi",
            "email": "mario@example.com",
            "phone": "+393331234567",
            "locationId": "loc-1",
        }
        _, appointment = provider.calls[1]
        assert appointment == {
            "calendarId": "cal-1",
            "locationId": "loc-1",
            "contactId": "c-3",
            "startTime": "2025-10-07T09:00:00+02:00",
            "endTime": "2025-10-07T09:30:00+02:00",
            "title": "Visit",
        }

    async def test_numeric_phone_sent_as_string(self, settings):
        provider = FakeProvider()
        await BookAppointmentTool(provider, settings).execute(_request(phone=393331234567))
        _, contact = provider.calls[0]
        assert contact["phone"] == "393331234567"

    async def test_default_title(self, settings):
        provider = FakeProvider()
        await BookAppointmentTool(provider, settings).execute(_request())
        _, appointment = provider.calls[1]
        assert appointment["title"] == "Appointment"

    async def test_missing_contact_id_is_contract_violation(self, settings):
        provider = FakeProvider(upsert={"succeded": True})
        tool = BookAppointmentTool(provider, settings)

        with pytest.raises(UpstreamContractViolation) as exc_info:
            await tool.execute(_request())

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == {"succeded": True}
        assert exc_info.value.stage == "contact"
        assert provider.count("upsert_contact") == 1
        assert provider.count("create_appointment") == 0

    async def test_contact_step_failure(self, settings):
        provider = FakeProvider(upsert=UpstreamTransportError(
            "HTTP 422", status_code=422, detail={"message": "bad phone"}
        ))
        tool = BookAppointmentTool(provider, settings)

        with pytest.raises(UpstreamTransportError) as exc_info:
            await tool.execute(_request())

        assert exc_info.value.stage == "contact"
        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "Upstream error on contact upsert"
        assert provider.count("upsert_contact") == 1
        assert provider.count("create_appointment") == 0

    async def test_appointment_step_failure(self, settings):
        provider = FakeProvider(appointment=UpstreamTransportError(
            "HTTP 400", status_code=400, detail={"message": "slot taken"}
        ))
        tool = BookAppointmentTool(provider, settings)

        with pytest.raises(UpstreamTransportError) as exc_info:
            await tool.execute(_request())

        assert exc_info.value.stage == "appointment"
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Upstream error on appointment creation"
        assert exc_info.value.detail == {"message": "slot taken"}
        assert provider.count("upsert_contact") == 1
        assert provider.count("create_appointment") == 1

    async def test_transport_failure_without_status(self, settings):
        provider = FakeProvider(appointment=UpstreamTransportError(
            "Timed out", detail={"message": "timeout"}
        ))
        with pytest.raises(UpstreamTransportError) as exc_info:
            await BookAppointmentTool(provider, settings).execute(_request())
        assert exc_info.value.status_code == 500
        assert exc_info.value.upstream_status is None

    async def test_unreadable_upsert_body_labelled_contact(self, settings):
        provider = FakeProvider(upsert=UpstreamContractViolation(
            "Non-JSON body", detail={"body": "<html>"}
        ))
        with pytest.raises(UpstreamContractViolation) as exc_info:
            await BookAppointmentTool(provider, settings).execute(_request())

        assert exc_info.value.stage == "contact"
        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == {"body": "<html>"}
        assert provider.count("create_appointment") == 0

    async def test_unreadable_appointment_body_labelled_appointment(self, settings):
        provider = FakeProvider(appointment=UpstreamContractViolation(
            "Non-JSON body", detail={"body": "<html>created</html>"}
        ))
        with pytest.raises(UpstreamContractViolation) as exc_info:
            await BookAppointmentTool(provider, settings).execute(_request())

        assert exc_info.value.stage == "appointment"
        assert exc_info.value.status_code == 502
        assert exc_info.value.message == (
            "Upstream contract violation on appointment creation"
        )
        assert provider.count("upsert_contact") == 1
        assert provider.count("create_appointment") == 1

    async def test_omitted_contact_fields_not_sent(self, settings):
        provider = FakeProvider()
        request = BookingRequest.model_validate({
            "name": "Mario",
            "startTime": "2025-10-07T09:00:00+02:00",
            "endTime": "2025-10-07T09:30:00+02:00",
        })
        await BookAppointmentTool(provider, settings).execute(request)

        _, contact = provider.calls[0]
        assert contact == {"name": "Mario", "locationId": "loc-1"}
