"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings

log = logging.getLogger("booking_bridge.config")


class Settings(BaseSettings):
    # LeadConnector (HighLevel) API
    ghl_token: str = ""
    ghl_base_url: str = "https://services.leadconnectorhq.com"
    ghl_api_version: str = "2021-07-28"
    calendar_id: str = ""
    location_id: str = ""

    # Slot policy
    calendar_timezone: str = "Europe/Rome"
    slot_filter_enabled: bool = True
    max_slots: int = 3
    diagnostic_max_slots: int = 10

    # Booking
    default_title: str = "Appointment"

    # Outbound HTTP
    request_timeout_seconds: float = 10.0

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    cors_origins: list[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def slot_limit(self) -> int:
        """Maximum slots returned; larger when the filter is off for diagnosis."""
        if self.slot_filter_enabled:
            return self.max_slots
        return self.diagnostic_max_slots

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        try:
            ZoneInfo(self.calendar_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(
                f"CALENDAR_TIMEZONE {self.calendar_timezone!r} is not a known "
                "IANA timezone."
            )

        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive.")

        if not self.ghl_token:
            warnings.append(
                "GHL_TOKEN not set. Every upstream call will be rejected."
            )
        if not self.calendar_id:
            warnings.append("CALENDAR_ID not set. Free-slot lookups will fail.")
        if not self.location_id:
            warnings.append(
                "LOCATION_ID not set. Contact upsert and booking will fail."
            )
        if not self.slot_filter_enabled:
            warnings.append(
                "SLOT_FILTER_ENABLED=false. Business-hour filtering is off and "
                f"up to {self.diagnostic_max_slots} raw slots are returned."
            )

        return warnings


settings = Settings()
