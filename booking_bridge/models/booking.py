"""Pydantic models for booking requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingRequest(BaseModel):
    """Contact details and appointment window sent by the voice agent.

    ``startTime``/``endTime`` are ISO-8601 strings with a UTC offset, e.g.
    ``2025-10-07T09:00:00+02:00``.  Their presence is checked by the booking
    tool, not here, so a missing value still produces a 400 rather than a
    schema error.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    title: Optional[str] = None


class BookingResponse(BaseModel):
    """Result returned after a successful booking."""

    ok: bool = True
    appointment: Any = None
