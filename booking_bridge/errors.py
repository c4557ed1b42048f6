"""Error taxonomy for the booking bridge.

Three failure kinds reach the caller:

  ClientInputError          400  request unusable, nothing sent upstream
  UpstreamTransportError    upstream status (500 when absent)
  UpstreamContractViolation 502  2xx response missing an expected field

None of them are retried here; the caller owns the retry decision.
"""

from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        detail: Any = None,
        stage: Optional[str] = None,
    ) -> None:
        """
        Args:
            message: Short human-readable summary, returned as ``error``.
            detail: Structured payload returned as ``detail``.
            stage: Orchestration step that failed (``availability``,
                ``contact`` or ``appointment``), when known.
        """
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.stage = stage

    def with_stage(self, message: str, stage: str) -> "BridgeError":
        """Return a copy re-labelled for the orchestration step that failed."""
        return type(self)(message, detail=self.detail, stage=stage)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "detail": self.detail}
        if self.stage:
            body["stage"] = self.stage
        return body


class ClientInputError(BridgeError):
    """Missing or invalid request fields. Never reaches the remote service."""

    status_code = 400


class UpstreamTransportError(BridgeError):
    """Network failure, timeout or non-2xx response from the remote service."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Any = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message, detail, stage)
        self.upstream_status = status_code
        self.status_code = status_code or 500

    def with_stage(self, message: str, stage: str) -> "UpstreamTransportError":
        """Return a copy re-labelled for the orchestration step that failed."""
        return UpstreamTransportError(
            message,
            status_code=self.upstream_status,
            detail=self.detail,
            stage=stage,
        )


class UpstreamContractViolation(BridgeError):
    """The remote service answered 2xx but the payload broke its contract."""

    status_code = 502
