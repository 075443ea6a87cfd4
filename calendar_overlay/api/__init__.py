"""API package initialization."""
from calendar_overlay.api.models import (
    BackgroundEventsRequest,
    BackgroundEventsResponse,
    ErrorResponse,
    OverlayRequest,
    OverlayResponse,
)

__all__ = [
    "BackgroundEventsRequest",
    "BackgroundEventsResponse",
    "ErrorResponse",
    "OverlayRequest",
    "OverlayResponse",
]
