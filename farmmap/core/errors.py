"""Error taxonomy for the parcel geometry subsystem."""

from __future__ import annotations

from enum import Enum


class CommitOutcome(str, Enum):
    """In-UI result of committing a drawn ring."""

    COMMITTED = "committed"
    OUTSIDE_BOUNDARY = "outside_boundary"
    OVERLAP_DETECTED = "overlap_detected"
    INVALID_RING = "invalid_ring"

    @property
    def message_key(self) -> str:
        """Translation key of the user-visible message for this outcome."""
        return f"drawing.outcome.{self.value}"


class FarmMapError(Exception):
    """Base class for all errors raised by this package."""


class LoadError(FarmMapError):
    """Map SDK or clustering library failed to load.

    Recoverable by a manual retry; never retried automatically.
    """


class BoundsFitError(FarmMapError):
    """Viewport could not be fitted to degenerate geometry."""


class CommitRejected(FarmMapError):
    """A drawn ring was refused at commit time."""

    outcome: CommitOutcome = CommitOutcome.INVALID_RING


class InvalidRingError(CommitRejected):
    """Ring has fewer than three valid points."""

    outcome = CommitOutcome.INVALID_RING


class OutsideBoundaryError(CommitRejected):
    """Parcel ring is not contained in the farm boundary."""

    outcome = CommitOutcome.OUTSIDE_BOUNDARY


class OverlapDetectedError(CommitRejected):
    """Parcel ring overlaps a sibling parcel ring."""

    outcome = CommitOutcome.OVERLAP_DETECTED
