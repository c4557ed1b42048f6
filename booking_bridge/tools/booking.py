"""Booking tool for the voice agent.

The agent calls ``book-appointment`` once the caller has picked a slot.
Booking is two sequential upstream calls:

  1. upsert the contact and pull its id out of the response
  2. create the appointment for that contact

A failure in step 2 leaves the contact in place.  Upsert is idempotent, so
the caller may simply retry; errors are labelled with the step that failed.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from booking_bridge.config import Settings
from booking_bridge.errors import (
    ClientInputError,
    UpstreamContractViolation,
    UpstreamTransportError,
)
from booking_bridge.models import BookingRequest, BookingResponse
from booking_bridge.policy import Unparseable, parse_timestamp
from booking_bridge.providers.base import SchedulingProvider

logger = logging.getLogger(__name__)

# Placeholder zone; booking times without an offset are rejected.
_UTC = ZoneInfo("UTC")


# ---------------------------------------------------------------------------
# Contact id extraction
# ---------------------------------------------------------------------------


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def contact_id_from_nested(payload: Any) -> Optional[str]:
    """``{"contact": {"id": ...}}``"""
    if isinstance(payload, dict) and isinstance(payload.get("contact"), dict):
        return _as_id(payload["contact"].get("id"))
    return None


def contact_id_from_top_level(payload: Any) -> Optional[str]:
    """``{"id": ...}``"""
    if isinstance(payload, dict):
        return _as_id(payload.get("id"))
    return None


def contact_id_from_field(payload: Any) -> Optional[str]:
    """``{"contactId": ...}``"""
    if isinstance(payload, dict):
        return _as_id(payload.get("contactId"))
    return None


CONTACT_ID_STRATEGIES: tuple[Callable[[Any], Optional[str]], ...] = (
    contact_id_from_nested,
    contact_id_from_top_level,
    contact_id_from_field,
)


def extract_contact_id(payload: Any) -> Optional[str]:
    """Return the first contact id found, probing strategies in priority order."""
    for strategy in CONTACT_ID_STRATEGIES:
        contact_id = strategy(payload)
        if contact_id is not None:
            return contact_id
    return None


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------


class BookAppointmentTool:
    """Book an appointment on the configured calendar.

    Fields accepted from the agent:

    * ``name``, ``email``, ``phone`` -- contact details, all optional.
    * ``startTime``, ``endTime``     -- ISO-8601 with offset, required.
    * ``title``                      -- defaults to ``Appointment``.
    """

    def __init__(self, provider: SchedulingProvider, settings: Settings) -> None:
        self._provider = provider
        self._calendar_id = settings.calendar_id
        self._location_id = settings.location_id
        self._default_title = settings.default_title

    async def execute(self, request: BookingRequest) -> BookingResponse:
        """Upsert the contact, then create the appointment."""
        self._validate(request)

        # 1) Contact; omitted fields are left out rather than sent as null
        contact_payload = {
            key: value
            for key, value in (
                ("name", request.name),
                ("email", request.email),
                ("phone", request.phone),
            )
            if value is not None
        }
        contact_payload["locationId"] = self._location_id
        try:
            upsert = await self._provider.upsert_contact(contact_payload)
        except UpstreamTransportError as exc:
            raise exc.with_stage("Upstream error on contact upsert", "contact")
        except UpstreamContractViolation as exc:
            raise exc.with_stage(
                "Upstream contract violation on contact upsert", "contact"
            )

        contact_id = extract_contact_id(upsert)
        if contact_id is None:
            logger.error("Contact upsert returned no id: %s", upsert)
            raise UpstreamContractViolation(
                "Contact upsert response is missing the contact id",
                detail=upsert,
                stage="contact",
            )

        # 2) Appointment
        appointment_payload = {
            "calendarId": self._calendar_id,
            "locationId": self._location_id,
            "contactId": contact_id,
            "startTime": request.start_time,
            "endTime": request.end_time,
            "title": request.title or self._default_title,
        }
        try:
            appointment = await self._provider.create_appointment(appointment_payload)
        except UpstreamTransportError as exc:
            logger.warning(
                "Contact %s was upserted but the appointment was not created",
                contact_id,
            )
            raise exc.with_stage(
                "Upstream error on appointment creation", "appointment"
            )
        except UpstreamContractViolation as exc:
            logger.warning(
                "Appointment call for contact %s answered 2xx with an unreadable "
                "body; the appointment may exist upstream",
                contact_id,
            )
            raise exc.with_stage(
                "Upstream contract violation on appointment creation", "appointment"
            )

        logger.info(
            "Booked %s..%s for contact %s",
            request.start_time,
            request.end_time,
            contact_id,
        )
        return BookingResponse(ok=True, appointment=appointment)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _validate(self, request: BookingRequest) -> None:
        if not request.start_time or not request.end_time:
            raise ClientInputError(
                "startTime and endTime are required (ISO-8601 with offset)",
                detail={"startTime": request.start_time, "endTime": request.end_time},
            )

        bounds = {}
        for field_name, raw in (
            ("startTime", request.start_time),
            ("endTime", request.end_time),
        ):
            parsed = parse_timestamp(raw, _UTC)
            if isinstance(parsed, Unparseable) or not parsed.had_offset:
                raise ClientInputError(
                    f"{field_name} must be an ISO-8601 timestamp with a UTC offset",
                    detail={field_name: raw},
                )
            bounds[field_name] = parsed.value

        if bounds["startTime"] >= bounds["endTime"]:
            raise ClientInputError(
                "startTime must be before endTime",
                detail={"startTime": request.start_time, "endTime": request.end_time},
            )
