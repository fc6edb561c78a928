"""Drawing session controller for farm boundary and parcel rings.

States::

    idle -> drawing -> completed -> committed | rejected -> idle

At most one session is active per process. Starting a session on one
controller cancels the session held by any other controller.
"""

from __future__ import annotations

import weakref
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from farmmap.core.errors import (
    CommitOutcome,
    CommitRejected,
    InvalidRingError,
    OutsideBoundaryError,
    OverlapDetectedError,
)
from farmmap.core.farm_state import DrawTarget, FarmState
from farmmap.core.parcel_geometry import any_polygons_overlap, polygon_inside_polygon
from farmmap.core.ring import Ring, is_polygon_ring, normalize_ring


class DrawingState(str, Enum):
    """Drawing session controller states."""

    IDLE = "idle"
    DRAWING = "drawing"
    COMPLETED = "completed"
    COMMITTED = "committed"
    REJECTED = "rejected"


class VertexEditKind(str, Enum):
    """Path mutation events emitted by an editable overlay."""

    INSERT = "insert_at"
    MOVE = "set_at"


@dataclass(frozen=True)
class VertexEdit:
    """One path mutation event carrying the full path after the edit."""

    kind: VertexEditKind
    index: int
    path: Ring


@dataclass
class DrawingSession:
    """Transient state of one in-progress draw."""

    session_id: int
    target: DrawTarget | None
    overlay: Any = None
    listener_token: Any = None
    ring: Ring = ()


_ACTIVE_CONTROLLER: weakref.ref | None = None


def _claim_active(controller: "DrawingSessionController") -> None:
    """Make ``controller`` the single active one, cancelling any other."""
    global _ACTIVE_CONTROLLER
    previous = _ACTIVE_CONTROLLER() if _ACTIVE_CONTROLLER is not None else None
    if previous is not None and previous is not controller:
        logger.debug("Cancelling drawing session held by another map")
        previous.cancel_drawing()
    _ACTIVE_CONTROLLER = weakref.ref(controller)


def _release_active(controller: "DrawingSessionController") -> None:
    global _ACTIVE_CONTROLLER
    if _ACTIVE_CONTROLLER is not None and _ACTIVE_CONTROLLER() is controller:
        _ACTIVE_CONTROLLER = None


class DrawingSessionController:
    """Drive one polygon draw at a time and validate it before commit.

    Parameters
    ----------
    drawing_tool : Any
        Single-polygon drawing tool exposing ``start(on_complete)`` and
        ``stop()``. ``on_complete`` receives an overlay exposing ``path()``,
        ``add_path_listener(callback)``, ``remove_path_listener(token)`` and
        ``remove()``.
    farm_state : FarmState
        Owner of the boundary and parcel rings.
    on_state_changed : Callable[[DrawingState], None], optional
        Called after every state transition.
    on_ring_changed : Callable[[Ring], None], optional
        Called whenever the exposed ring snapshot changes.
    on_committed : Callable[[DrawTarget, Ring], None], optional
        Called after a ring has been written into the farm state.
    """

    def __init__(
        self,
        drawing_tool: Any,
        farm_state: FarmState,
        on_state_changed: Callable[[DrawingState], None] | None = None,
        on_ring_changed: Callable[[Ring], None] | None = None,
        on_committed: Callable[[DrawTarget, Ring], None] | None = None,
    ) -> None:
        self._tool = drawing_tool
        self._farm_state = farm_state
        self._on_state_changed = on_state_changed
        self._on_ring_changed = on_ring_changed
        self._on_committed = on_committed
        self._state = DrawingState.IDLE
        self._session: DrawingSession | None = None
        self._next_session_id = 0
        self._alive = True
        self.last_outcome: CommitOutcome | None = None

    @property
    def state(self) -> DrawingState:
        return self._state

    @property
    def ring(self) -> Ring:
        """Latest ring snapshot of the active session, empty when idle."""
        session = self._session
        return session.ring if session is not None else ()

    @property
    def target(self) -> DrawTarget | None:
        session = self._session
        return session.target if session is not None else None

    @property
    def is_active(self) -> bool:
        return self._state in (DrawingState.DRAWING, DrawingState.COMPLETED)

    def start_drawing(self, target: DrawTarget | None = None) -> bool:
        """Enable the polygon tool for a new session.

        Any overlay left by a previous session is discarded first.

        Returns
        -------
        bool
            False when the controller has been torn down.
        """
        if not self._alive:
            return False
        if self._session is not None:
            self._discard_session()
        _claim_active(self)
        session = DrawingSession(session_id=self._next_session_id, target=target)
        self._next_session_id += 1
        self._session = session
        self._set_state(DrawingState.DRAWING)
        session_id = session.session_id
        self._tool.start(lambda overlay: self._on_shape_completed(session_id, overlay))
        logger.debug(f"Drawing session {session_id} started for {target}")
        return True

    def cancel_drawing(self) -> None:
        """Discard the active session without persisting anything."""
        if self._session is None:
            return
        logger.debug(f"Drawing session {self._session.session_id} cancelled")
        self._discard_session()
        _release_active(self)
        self._set_state(DrawingState.IDLE)

    def apply_vertex_edit(self, edit: VertexEdit) -> None:
        """Replace the exposed ring with the path carried by ``edit``."""
        session = self._session
        if session is None or self._state != DrawingState.COMPLETED:
            return
        session.ring = normalize_ring(edit.path)
        self._emit_ring(session.ring)

    def commit(self, target: DrawTarget | None = None) -> CommitOutcome:
        """Validate the current ring against ``target`` and write it.

        Parameters
        ----------
        target : DrawTarget, optional
            Entity receiving the ring; defaults to the session target.

        Returns
        -------
        CommitOutcome
            ``INVALID_RING`` keeps the session open so the user can keep
            drawing. ``OUTSIDE_BOUNDARY`` and ``OVERLAP_DETECTED`` discard the
            session without mutating the farm state.
        """
        session = self._session
        if session is None or self._state != DrawingState.COMPLETED:
            logger.warning("Commit requested without a completed polygon")
            return self._record(CommitOutcome.INVALID_RING)
        target = target or session.target
        if target is None:
            raise ValueError("commit target is required")
        ring = session.ring

        try:
            self._validate(target, ring)
        except InvalidRingError:
            logger.warning(f"Ring with {len(ring)} points cannot be committed")
            return self._record(CommitOutcome.INVALID_RING)
        except CommitRejected as exc:
            logger.warning(f"Commit rejected for {target}: {exc.outcome.value}")
            self._set_state(DrawingState.REJECTED)
            self._discard_session()
            _release_active(self)
            self._set_state(DrawingState.IDLE)
            return self._record(exc.outcome)

        self._farm_state.write_ring(target, ring)
        self._set_state(DrawingState.COMMITTED)
        self._discard_session()
        _release_active(self)
        self._set_state(DrawingState.IDLE)
        if self._on_committed is not None:
            self._on_committed(target, ring)
        return self._record(CommitOutcome.COMMITTED)

    def teardown(self) -> None:
        """Detach every listener and destroy overlays; later callbacks no-op."""
        self._alive = False
        if self._session is not None:
            self._discard_session()
        _release_active(self)
        self._state = DrawingState.IDLE

    def _validate(self, target: DrawTarget, ring: Ring) -> None:
        if not is_polygon_ring(ring):
            raise InvalidRingError("ring needs at least three points")
        if target.is_boundary:
            return
        if not self._farm_state.has_target(target):
            raise KeyError(f"parcel {target.parcel_id} not found")
        if not polygon_inside_polygon(ring, self._farm_state.boundary_ring):
            raise OutsideBoundaryError("parcel is outside the farm boundary")
        others = self._farm_state.committed_parcel_rings(
            exclude_parcel_id=target.parcel_id
        )
        if any_polygons_overlap([*others, ring]):
            raise OverlapDetectedError("parcel overlaps another parcel")

    def _on_shape_completed(self, session_id: int, overlay: Any) -> None:
        session = self._session
        if (
            not self._alive
            or session is None
            or session.session_id != session_id
            or self._state != DrawingState.DRAWING
        ):
            overlay.remove()
            return
        self._tool.stop()
        session.overlay = overlay
        session.ring = normalize_ring(overlay.path())
        session.listener_token = overlay.add_path_listener(
            lambda kind, index, path: self._on_path_event(session_id, kind, index, path)
        )
        self._set_state(DrawingState.COMPLETED)
        self._emit_ring(session.ring)
        logger.debug(f"Drawing session {session_id} completed ({len(session.ring)} points)")

    def _on_path_event(self, session_id: int, kind: str, index: int, path: Any) -> None:
        session = self._session
        if not self._alive or session is None or session.session_id != session_id:
            return
        self.apply_vertex_edit(
            VertexEdit(kind=VertexEditKind(kind), index=int(index), path=normalize_ring(path))
        )

    def _discard_session(self) -> None:
        session = self._session
        self._session = None
        if session is None:
            return
        self._tool.stop()
        if session.overlay is not None:
            if session.listener_token is not None:
                session.overlay.remove_path_listener(session.listener_token)
            session.overlay.remove()

    def _set_state(self, state: DrawingState) -> None:
        self._state = state
        if self._on_state_changed is not None and self._alive:
            self._on_state_changed(state)

    def _emit_ring(self, ring: Ring) -> None:
        if self._on_ring_changed is not None and self._alive:
            self._on_ring_changed(ring)

    def _record(self, outcome: CommitOutcome) -> CommitOutcome:
        self.last_outcome = outcome
        return outcome
