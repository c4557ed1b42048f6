"""Pydantic models for the free-slot lookup."""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FreeSlotsRequest(BaseModel):
    """Date range to search, starting at ``startDate`` for ``days`` days."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[str] = Field(default=None, alias="startDate")
    days: int = 14

    @field_validator("start_date", mode="before")
    @classmethod
    def _blank_start_is_today(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("days", mode="before")
    @classmethod
    def _coerce_days(cls, value: Any) -> int:
        if value is None or value == "":
            return 14
        if isinstance(value, bool):
            raise ValueError("days must be a number")
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise ValueError("days must be a number")
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValueError("days must be a number")
        return max(0, int(value))


class FreeSlotsResponse(BaseModel):
    """Filtered slots plus the context needed for a follow-up booking."""

    model_config = ConfigDict(populate_by_name=True)

    calendar_id: str = Field(alias="calendarId")
    timezone: str
    slots: list[dict[str, Any]] = Field(default_factory=list)
