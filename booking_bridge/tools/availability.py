"""Free-slot lookup for the voice agent.

The agent calls ``get-free-slots`` with an optional start date and a
lookahead in days.  One request goes to the scheduling provider; the slots
it returns are checked against the business-hour policy and the first few
survivors are handed back together with the calendar id and timezone, so
the agent can pass them straight into a booking.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from booking_bridge.config import Settings
from booking_bridge.errors import (
    ClientInputError,
    UpstreamContractViolation,
    UpstreamTransportError,
)
from booking_bridge.models import FreeSlotsResponse
from booking_bridge.policy import (
    SlotPolicy,
    Unparseable,
    offset_matches_zone,
    parse_date_or_timestamp,
    parse_timestamp,
)
from booking_bridge.providers.base import SchedulingProvider

logger = logging.getLogger(__name__)


def resolve_range(
    start_date: Optional[str],
    days: int,
    policy: SlotPolicy,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` in the policy zone.

    ``end`` is ``days`` calendar days after ``start`` at the same wall-clock
    time, so a DST change inside the window does not shift it by an hour.
    """
    zone = policy.zone
    if start_date:
        parsed = parse_date_or_timestamp(start_date, zone)
        if isinstance(parsed, Unparseable):
            raise ClientInputError(
                "startDate must be YYYY-MM-DD or an ISO-8601 timestamp",
                detail={"startDate": start_date, "reason": parsed.reason},
            )
        start = parsed.value.astimezone(zone)
    else:
        start = (now or datetime.now(tz=zone)).astimezone(zone)

    # Aware arithmetic on a ZoneInfo datetime is wall-clock arithmetic.
    try:
        end = start + timedelta(days=max(0, days))
    except OverflowError:
        raise ClientInputError(
            "days reaches past the last representable date",
            detail={"startDate": start_date, "days": days},
        )
    return start, end


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def normalize_slots(payload: Any) -> list[dict[str, Any]]:
    """Flatten the shapes the free-slot endpoint has been seen to return.

    Accepted, in remote order:
      * a bare list of slots
      * ``{"slots": [...]}``
      * ``{"2025-10-03": {"slots": [...]}, ...}`` keyed by calendar date

    String entries become ``{"startTime": <string>}``; entries that are
    neither strings nor dicts are dropped.
    """
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get("slots"), list):
            entries = payload["slots"]
        else:
            entries = []
            for key in sorted(payload):
                day = payload[key]
                if isinstance(day, dict) and isinstance(day.get("slots"), list):
                    entries.extend(day["slots"])
    else:
        entries = []

    slots: list[dict[str, Any]] = []
    for entry in entries:
        if isinstance(entry, str):
            slots.append({"startTime": entry})
        elif isinstance(entry, dict):
            slots.append(entry)
    return slots


class CheckAvailabilityTool:
    """Return bookable slots from the remote calendar.

    Parameters accepted from the agent:

    * ``start_date`` -- ``YYYY-MM-DD`` or an ISO timestamp.  Defaults to now.
    * ``days``       -- How many days to search forward (default **14**).
    """

    def __init__(
        self,
        provider: SchedulingProvider,
        settings: Settings,
        policy: Optional[SlotPolicy] = None,
    ) -> None:
        self._provider = provider
        self._calendar_id = settings.calendar_id
        self._policy = policy or SlotPolicy(timezone=settings.calendar_timezone)
        self._filter_enabled = settings.slot_filter_enabled
        self._limit = settings.slot_limit

    async def execute(
        self,
        start_date: Optional[str] = None,
        days: int = 14,
        now: Optional[datetime] = None,
    ) -> FreeSlotsResponse:
        """Query the provider and return the filtered, truncated slot list."""
        start, end = resolve_range(start_date, days, self._policy, now=now)

        try:
            payload = await self._provider.get_free_slots(
                calendar_id=self._calendar_id,
                start_ms=to_epoch_ms(start),
                end_ms=to_epoch_ms(end),
                timezone=self._policy.timezone,
            )
        except UpstreamTransportError as exc:
            raise exc.with_stage("Upstream error on free-slots", "availability")
        except UpstreamContractViolation as exc:
            raise exc.with_stage(
                "Upstream contract violation on free-slots", "availability"
            )

        raw_slots = normalize_slots(payload)
        slots = self._select(raw_slots)

        logger.info(
            "free-slots %s..%s: %d raw, %d returned (filter=%s)",
            start.date(),
            end.date(),
            len(raw_slots),
            len(slots),
            "on" if self._filter_enabled else "off",
        )

        return FreeSlotsResponse(
            calendarId=self._calendar_id,
            timezone=self._policy.timezone,
            slots=slots,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _select(self, raw_slots: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not self._filter_enabled:
            return raw_slots[: self._limit]

        zone = self._policy.zone
        selected: list[dict[str, Any]] = []
        mismatched = 0
        for slot in raw_slots:
            parsed = parse_timestamp(slot.get("startTime"), zone)
            if isinstance(parsed, Unparseable):
                logger.debug("Skipping slot %r: %s", slot, parsed.reason)
                continue
            if not offset_matches_zone(parsed, zone):
                mismatched += 1
            if self._policy.allows(parsed.value):
                selected.append(slot)
                if len(selected) >= self._limit:
                    break

        if mismatched:
            logger.warning(
                "%d slot(s) carried an offset other than %s; "
                "evaluated after conversion to that zone",
                mismatched,
                self._policy.timezone,
            )
        return selected
