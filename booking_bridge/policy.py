"""Business-hour policy for slots offered to the caller.

The remote calendar has no notion of the business's opening hours, so every
slot it returns is re-checked here: weekdays only, 09:00-13:00 and
15:00-18:00, half-open (13:00 and 18:00 are out).

Slot timestamps are read with :func:`parse_timestamp`, which returns either a
:class:`ParsedTimestamp` or an :class:`Unparseable` marker.  An unparseable
slot is simply not allowed; it never raises.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Union
from zoneinfo import ZoneInfo

log = logging.getLogger("booking_bridge.policy")

DEFAULT_TIMEZONE = "Europe/Rome"

# Epoch values above this are milliseconds (10^11 s is in the year 5138).
_EPOCH_MS_THRESHOLD = 10**11


@dataclass(frozen=True)
class ParsedTimestamp:
    """A slot timestamp that was understood.

    ``value`` is always timezone-aware.  ``had_offset`` is False when the
    source carried no offset and the policy zone was assumed.
    """

    value: datetime
    had_offset: bool = True


@dataclass(frozen=True)
class Unparseable:
    raw: Any
    reason: str


ParseResult = Union[ParsedTimestamp, Unparseable]


def parse_timestamp(raw: Any, zone: ZoneInfo) -> ParseResult:
    """Interpret an ISO-8601 string, epoch number or datetime.

    Naive values are assumed to already be in ``zone``.
    """
    if isinstance(raw, bool) or raw is None:
        return Unparseable(raw, "no timestamp value")

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return ParsedTimestamp(raw.replace(tzinfo=zone), had_offset=False)
        return ParsedTimestamp(raw)

    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return Unparseable(raw, "non-finite epoch")
        seconds = raw / 1000 if abs(raw) >= _EPOCH_MS_THRESHOLD else raw
        try:
            return ParsedTimestamp(datetime.fromtimestamp(seconds, tz=zone))
        except (OverflowError, OSError, ValueError):
            return Unparseable(raw, "epoch out of range")

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return Unparseable(raw, "empty string")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return Unparseable(raw, "not ISO-8601")
        if parsed.tzinfo is None:
            return ParsedTimestamp(parsed.replace(tzinfo=zone), had_offset=False)
        return ParsedTimestamp(parsed)

    return Unparseable(raw, f"unsupported type {type(raw).__name__}")


def parse_date_or_timestamp(raw: str, zone: ZoneInfo) -> ParseResult:
    """Like :func:`parse_timestamp`, but a bare ``YYYY-MM-DD`` means local midnight."""
    text = raw.strip() if isinstance(raw, str) else raw
    if isinstance(text, str) and len(text) == 10:
        try:
            day = date.fromisoformat(text)
        except ValueError:
            return Unparseable(raw, "not a calendar date")
        return ParsedTimestamp(
            datetime.combine(day, time.min, tzinfo=zone), had_offset=False
        )
    return parse_timestamp(raw, zone)


def offset_matches_zone(parsed: ParsedTimestamp, zone: ZoneInfo) -> bool:
    """True when the timestamp's own offset is the zone's offset at that instant."""
    if not parsed.had_offset:
        return True
    return parsed.value.utcoffset() == parsed.value.astimezone(zone).utcoffset()


@dataclass(frozen=True)
class SlotPolicy:
    """Weekday and hour-of-day windows a slot must fall into.

    Windows are ``(start_hour, end_hour)`` pairs, start inclusive and end
    exclusive.  Weekdays use ``datetime.weekday()`` numbering (Monday is 0).
    """

    timezone: str = DEFAULT_TIMEZONE
    weekdays: frozenset[int] = frozenset({0, 1, 2, 3, 4})
    windows: tuple[tuple[int, int], ...] = ((9, 13), (15, 18))
    _zone: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_zone", ZoneInfo(self.timezone))

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def allows(self, moment: datetime) -> bool:
        local = moment.astimezone(self._zone)
        if local.weekday() not in self.weekdays:
            return False
        return any(start <= local.hour < end for start, end in self.windows)


DEFAULT_POLICY = SlotPolicy()


def slot_allowed(raw: Any, policy: SlotPolicy = DEFAULT_POLICY) -> bool:
    """Return whether a slot start time falls inside the business hours."""
    parsed = parse_timestamp(raw, policy.zone)
    if isinstance(parsed, Unparseable):
        log.debug("Rejecting slot %r: %s", parsed.raw, parsed.reason)
        return False
    return policy.allows(parsed.value)
