"""Parcel drawing session and read-only polygon display controllers."""

from farmmap.utils.parcel_drawing.display_controller import (
    PARCEL_PALETTE,
    PolygonDisplayController,
)
from farmmap.utils.parcel_drawing.session_controller import (
    DrawingSession,
    DrawingSessionController,
    DrawingState,
    VertexEdit,
    VertexEditKind,
)

__all__ = [
    "PARCEL_PALETTE",
    "DrawingSession",
    "DrawingSessionController",
    "DrawingState",
    "PolygonDisplayController",
    "VertexEdit",
    "VertexEditKind",
]
