"""Abstract base class for remote scheduling services.

Defines the three calls the bridge makes: free-slot lookup, contact upsert
and appointment creation.  Implementations raise
:class:`~booking_bridge.errors.UpstreamTransportError` for network failures,
timeouts and non-2xx responses, and return the decoded JSON body otherwise.
"""

from abc import ABC, abstractmethod
from typing import Any


class SchedulingProvider(ABC):
    """Abstract scheduling backend.

    Payloads are passed through as plain dicts in the remote service's own
    field names; the orchestrators own their shape.
    """

    @abstractmethod
    async def get_free_slots(
        self,
        calendar_id: str,
        start_ms: int,
        end_ms: int,
        timezone: str,
    ) -> Any:
        """Return the raw free-slot payload for a calendar.

        Args:
            calendar_id: The calendar to query.
            start_ms: Window start, epoch milliseconds.
            end_ms: Window end, epoch milliseconds.
            timezone: IANA zone the service should express slots in.

        Returns:
            Either a bare list of slots or an envelope holding them.
        """

    @abstractmethod
    async def upsert_contact(self, payload: dict[str, Any]) -> Any:
        """Create or update a contact keyed by its identity fields.

        Args:
            payload: ``name``, ``email``, ``phone`` and ``locationId``.

        Returns:
            The remote payload; the contact id may be nested in it.
        """

    @abstractmethod
    async def create_appointment(self, payload: dict[str, Any]) -> Any:
        """Create an appointment for an existing contact.

        Args:
            payload: ``calendarId``, ``locationId``, ``contactId``,
                ``startTime``, ``endTime`` and ``title``.

        Returns:
            The remote appointment record, unchanged.
        """

    async def close(self) -> None:
        """Release transport resources. Safe to call multiple times."""
