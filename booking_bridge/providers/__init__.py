"""Remote scheduling service abstractions and implementations."""

from .base import SchedulingProvider
from .leadconnector import LeadConnectorProvider

__all__ = ["LeadConnectorProvider", "SchedulingProvider"]
