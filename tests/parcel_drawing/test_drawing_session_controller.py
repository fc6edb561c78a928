"""Tests for the drawing session controller state machine."""

from __future__ import annotations

import pytest

from farmmap.core.errors import CommitOutcome
from farmmap.core.farm_state import DrawTarget, FarmState, ParcelCategory
from farmmap.core.ring import Coordinate, normalize_ring
from farmmap.utils.parcel_drawing import (
    DrawingSessionController,
    DrawingState,
    VertexEdit,
    VertexEditKind,
)

BOUNDARY = [(0, 0), (0, 10), (10, 10), (10, 0)]


class _FakeOverlay:
    """Editable-overlay double emitting path events on demand."""

    def __init__(self, points) -> None:
        self._path = [Coordinate(float(lat), float(lng)) for lat, lng in points]
        self._listeners: dict[int, object] = {}
        self._next_token = 0
        self.removed = False

    def path(self):
        return list(self._path)

    def add_path_listener(self, callback) -> int:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback
        return token

    def remove_path_listener(self, token: int) -> None:
        self._listeners.pop(token, None)

    def remove(self) -> None:
        self.removed = True

    def edit(self, kind: str, index: int, points) -> None:
        self._path = [Coordinate(float(lat), float(lng)) for lat, lng in points]
        for callback in list(self._listeners.values()):
            callback(kind, index, self.path())

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class _FakeDrawingTool:
    """Polygon-tool double; the test decides when a shape completes."""

    def __init__(self) -> None:
        self.callbacks: list[object] = []
        self.active = False
        self.stop_calls = 0

    def start(self, on_complete) -> None:
        self.callbacks.append(on_complete)
        self.active = True

    def stop(self) -> None:
        self.active = False
        self.stop_calls += 1

    def complete(self, points, callback_index: int = -1) -> _FakeOverlay:
        overlay = _FakeOverlay(points)
        self.callbacks[callback_index](overlay)
        return overlay


def _make_controller(farm_state: FarmState | None = None):
    tool = _FakeDrawingTool()
    state = farm_state or FarmState(boundary_ring=BOUNDARY)
    events: dict[str, list] = {"states": [], "rings": [], "committed": []}
    controller = DrawingSessionController(
        tool,
        state,
        on_state_changed=events["states"].append,
        on_ring_changed=events["rings"].append,
        on_committed=lambda target, ring: events["committed"].append((target, ring)),
    )
    return controller, tool, state, events


def test_parcel_inside_boundary_commits() -> None:
    controller, tool, state, events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT, "Dates")
    target = DrawTarget.parcel(parcel_id)

    assert controller.start_drawing(target) is True
    assert tool.active is True
    overlay = tool.complete([(2, 2), (2, 4), (4, 4), (4, 2)])
    assert controller.state == DrawingState.COMPLETED
    assert tool.active is False

    outcome = controller.commit()

    assert outcome == CommitOutcome.COMMITTED
    assert controller.last_outcome == CommitOutcome.COMMITTED
    assert state.get_parcel(parcel_id).ring == normalize_ring([(2, 2), (2, 4), (4, 4), (4, 2)])
    assert controller.state == DrawingState.IDLE
    assert overlay.removed is True
    assert overlay.listener_count == 0
    assert events["states"] == [
        DrawingState.DRAWING,
        DrawingState.COMPLETED,
        DrawingState.COMMITTED,
        DrawingState.IDLE,
    ]
    assert events["committed"][0][0] == target


def test_parcel_partly_outside_boundary_is_rejected() -> None:
    controller, tool, state, events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.VEGETABLE)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    overlay = tool.complete([(8, 8), (8, 12), (12, 12), (12, 8)])

    outcome = controller.commit()

    assert outcome == CommitOutcome.OUTSIDE_BOUNDARY
    assert state.get_parcel(parcel_id).ring == ()
    assert overlay.removed is True
    assert controller.state == DrawingState.IDLE
    assert DrawingState.REJECTED in events["states"]
    assert events["committed"] == []


def test_parcel_overlapping_sibling_is_rejected() -> None:
    controller, tool, state, _events = _make_controller()
    parcel_a = state.add_parcel(ParcelCategory.FRUIT, "A")
    state.write_ring(DrawTarget.parcel(parcel_a), [(1, 1), (1, 3), (3, 3), (3, 1)])
    parcel_b = state.add_parcel(ParcelCategory.FODDER, "B")

    controller.start_drawing(DrawTarget.parcel(parcel_b))
    tool.complete([(2, 2), (2, 5), (5, 5), (5, 2)])

    assert controller.commit() == CommitOutcome.OVERLAP_DETECTED
    assert state.get_parcel(parcel_b).ring == ()
    assert len(state.get_parcel(parcel_a).ring) == 4


def test_redrawing_a_parcel_ignores_its_own_previous_ring() -> None:
    controller, tool, state, _events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    state.write_ring(DrawTarget.parcel(parcel_id), [(1, 1), (1, 3), (3, 3), (3, 1)])

    controller.start_drawing(DrawTarget.parcel(parcel_id))
    tool.complete([(2, 2), (2, 5), (5, 5), (5, 2)])

    assert controller.commit() == CommitOutcome.COMMITTED
    assert state.get_parcel(parcel_id).ring[0] == Coordinate(2, 2)


def test_boundary_commit_skips_parcel_checks() -> None:
    controller, tool, state, _events = _make_controller(FarmState())
    controller.start_drawing(DrawTarget.boundary())
    tool.complete(BOUNDARY)

    assert controller.commit() == CommitOutcome.COMMITTED
    assert len(state.boundary_ring) == 4


def test_commit_without_completed_shape_is_invalid_ring() -> None:
    controller, _tool, _state, _events = _make_controller()
    assert controller.commit(DrawTarget.boundary()) == CommitOutcome.INVALID_RING

    controller.start_drawing(DrawTarget.boundary())
    assert controller.commit() == CommitOutcome.INVALID_RING
    assert controller.state == DrawingState.DRAWING


def test_invalid_ring_keeps_session_open() -> None:
    """Edits that collapse the ring can be fixed before saving again."""
    controller, tool, state, _events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    overlay = tool.complete([(2, 2), (2, 4), (4, 4)])
    overlay.edit("set_at", 2, [(2, 2), (2, 4), (2, 4)])

    assert controller.commit() == CommitOutcome.INVALID_RING
    assert controller.state == DrawingState.COMPLETED
    assert overlay.removed is False

    overlay.edit("set_at", 2, [(2, 2), (2, 4), (4, 4)])
    assert controller.commit() == CommitOutcome.COMMITTED


def test_latest_vertex_edit_wins() -> None:
    controller, tool, state, events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    overlay = tool.complete([(2, 2), (2, 4), (4, 4)])

    overlay.edit("insert_at", 3, [(2, 2), (2, 4), (4, 4), (4, 2)])
    overlay.edit("set_at", 0, [(1, 1), (2, 4), (4, 4), (4, 2)])

    assert controller.ring == normalize_ring([(1, 1), (2, 4), (4, 4), (4, 2)])
    assert len(events["rings"]) == 3
    controller.commit()
    assert state.get_parcel(parcel_id).ring[0] == Coordinate(1, 1)


def test_commit_reads_one_snapshot_of_the_ring() -> None:
    """A vertex edit arriving while the commit runs does not leak into it."""
    state = FarmState(boundary_ring=BOUNDARY)
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    tool = _FakeDrawingTool()
    holder: dict[str, object] = {}

    def on_state_changed(new_state: DrawingState) -> None:
        if new_state == DrawingState.COMMITTED:
            holder["overlay"].edit("set_at", 0, [(9, 9), (9, 9.5), (9.5, 9.5)])

    controller = DrawingSessionController(tool, state, on_state_changed=on_state_changed)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    holder["overlay"] = tool.complete([(2, 2), (2, 4), (4, 4)])

    assert controller.commit() == CommitOutcome.COMMITTED
    assert state.get_parcel(parcel_id).ring == normalize_ring([(2, 2), (2, 4), (4, 4)])


def test_apply_vertex_edit_directly() -> None:
    controller, tool, state, _events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    tool.complete([(2, 2), (2, 4), (4, 4)])

    controller.apply_vertex_edit(
        VertexEdit(VertexEditKind.MOVE, 1, normalize_ring([(2, 2), (3, 5), (4, 4)]))
    )

    assert controller.ring[1] == Coordinate(3, 5)


def test_cancel_discards_overlay_and_keeps_state() -> None:
    controller, tool, state, _events = _make_controller()
    controller.start_drawing(DrawTarget.boundary())
    overlay = tool.complete([(0, 0), (0, 20), (20, 20)])

    controller.cancel_drawing()

    assert overlay.removed is True
    assert controller.state == DrawingState.IDLE
    assert controller.ring == ()
    assert len(state.boundary_ring) == 4


def test_restart_discards_previous_overlay_and_stale_completion() -> None:
    controller, tool, _state, _events = _make_controller()
    controller.start_drawing(DrawTarget.boundary())
    first_overlay = tool.complete([(0, 0), (0, 1), (1, 1)])

    controller.start_drawing(DrawTarget.boundary())
    assert first_overlay.removed is True
    assert controller.state == DrawingState.DRAWING

    stale_overlay = tool.complete([(5, 5), (5, 6), (6, 6)], callback_index=0)
    assert stale_overlay.removed is True
    assert controller.state == DrawingState.DRAWING


def test_teardown_turns_late_callbacks_into_no_ops() -> None:
    controller, tool, _state, events = _make_controller()
    controller.start_drawing(DrawTarget.boundary())

    controller.teardown()
    late_overlay = tool.complete([(0, 0), (0, 1), (1, 1)])

    assert late_overlay.removed is True
    assert controller.state == DrawingState.IDLE
    assert controller.start_drawing(DrawTarget.boundary()) is False
    assert events["states"] == [DrawingState.DRAWING]


def test_teardown_removes_completed_overlay_listeners() -> None:
    controller, tool, _state, _events = _make_controller()
    controller.start_drawing(DrawTarget.boundary())
    overlay = tool.complete([(0, 0), (0, 1), (1, 1)])

    controller.teardown()

    assert overlay.removed is True
    assert overlay.listener_count == 0


def test_only_one_session_is_active_across_controllers() -> None:
    first, first_tool, _state_a, _events_a = _make_controller()
    second, second_tool, _state_b, _events_b = _make_controller()

    first.start_drawing(DrawTarget.boundary())
    second.start_drawing(DrawTarget.boundary())

    assert first.state == DrawingState.IDLE
    assert first_tool.active is False
    assert second.state == DrawingState.DRAWING
    assert second_tool.active is True
    second.teardown()
    first.teardown()


def test_commit_to_removed_parcel_raises_key_error() -> None:
    controller, tool, state, _events = _make_controller()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT)
    controller.start_drawing(DrawTarget.parcel(parcel_id))
    tool.complete([(2, 2), (2, 4), (4, 4)])
    state.remove_parcel(parcel_id)

    with pytest.raises(KeyError):
        controller.commit()
