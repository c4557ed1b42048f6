"""LeadConnector (HighLevel) scheduling provider.

Talks to the LeadConnector REST API with a location-scoped bearer token.
Every request carries the ``Version`` header the API requires and is bounded
by the configured timeout; a timeout is reported like any other upstream
failure.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from booking_bridge.config import Settings
from booking_bridge.errors import UpstreamContractViolation, UpstreamTransportError

from .base import SchedulingProvider

logger = logging.getLogger(__name__)


class LeadConnectorProvider(SchedulingProvider):
    """SchedulingProvider backed by the LeadConnector API v2."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._token = settings.ghl_token
        self._api_version = settings.ghl_api_version
        self._client = client or httpx.AsyncClient(
            base_url=settings.ghl_base_url,
            timeout=settings.request_timeout_seconds,
        )
        self._owns_client = client is None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
            "Version": self._api_version,
        }

    @staticmethod
    def _error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request and decode its JSON body. No retries."""
        try:
            response = await self._client.request(
                method, path, headers=self.headers, **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.error("Timeout on %s %s: %s", method, path, exc)
            raise UpstreamTransportError(
                f"Timed out calling {method} {path}",
                detail={"message": str(exc) or "timeout"},
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Request error on %s %s: %s", method, path, exc)
            raise UpstreamTransportError(
                f"Could not reach {method} {path}",
                detail={"message": str(exc)},
            ) from exc

        logger.debug("Response from %s %s: %s", method, path, response.status_code)

        if not response.is_success:
            body = self._error_body(response)
            logger.error(
                "HTTP %s from %s %s: %s", response.status_code, method, path, body
            )
            raise UpstreamTransportError(
                f"HTTP {response.status_code} from {method} {path}",
                status_code=response.status_code,
                detail=body,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamContractViolation(
                f"Non-JSON body from {method} {path}",
                detail={"body": response.text[:500]},
            ) from exc

    # ------------------------------------------------------------------
    # SchedulingProvider interface
    # ------------------------------------------------------------------

    async def get_free_slots(
        self,
        calendar_id: str,
        start_ms: int,
        end_ms: int,
        timezone: str,
    ) -> Any:
        params = {"startDate": start_ms, "endDate": end_ms, "timezone": timezone}
        logger.info("GET free-slots calendar=%s params=%s", calendar_id, params)
        return await self._request(
            "GET", f"/calendars/{calendar_id}/free-slots", params=params
        )

    async def upsert_contact(self, payload: dict[str, Any]) -> Any:
        logger.info("POST contacts/upsert location=%s", payload.get("locationId"))
        return await self._request("POST", "/contacts/upsert", json=payload)

    async def create_appointment(self, payload: dict[str, Any]) -> Any:
        logger.info(
            "POST appointments calendar=%s contact=%s start=%s",
            payload.get("calendarId"),
            payload.get("contactId"),
            payload.get("startTime"),
        )
        return await self._request(
            "POST", "/calendars/events/appointments", json=payload
        )

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Owned httpx.AsyncClient closed.")
