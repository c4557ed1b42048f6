"""Request and response models for the bridge endpoints."""

from .availability import FreeSlotsRequest, FreeSlotsResponse
from .booking import BookingRequest, BookingResponse

__all__ = [
    "BookingRequest",
    "BookingResponse",
    "FreeSlotsRequest",
    "FreeSlotsResponse",
]
