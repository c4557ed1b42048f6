"""Agent-callable operations exposed by the bridge."""

from .availability import CheckAvailabilityTool
from .booking import BookAppointmentTool

__all__ = ["BookAppointmentTool", "CheckAvailabilityTool"]
