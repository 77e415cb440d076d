import math

import pytest

from conftest import BlindViewport, FakeClock, LinearViewport
from mapcam.controllers.camera_controller import (
    CAMERA_SCREEN_DEPTH,
    SCREEN_SCALE_FACTOR,
    ControllerOptions,
    MapCameraController,
    ScrollZoomOptions,
    wheel_scale,
)
from mapcam.controllers.events import EventType, GestureEvent, Modifiers
from mapcam.controllers.gesture_session import ControllerPhase, DragMode, PanSession, RotateSession
from mapcam.core import geometry_utils
from mapcam.core.viewport import FirstPersonViewport
from mapcam.core.viewport_state import InteractionFlags, ViewportState, inertia_easing


def _controller(state, updates, *, options=None, viewport=LinearViewport, clock=None, **kwargs):
    return MapCameraController(
        state,
        updates.append,
        width=800,
        height=600,
        options=options,
        viewport_factory=viewport,
        clock=clock or FakeClock(),
        **kwargs,
    )


def _event(event_type, x, y, **kwargs):
    return GestureEvent(type=event_type, offset_center=(x, y), **kwargs)


def _drag(controller, start, end, **end_kwargs):
    assert controller.handle_event(_event(EventType.PAN_START, *start))
    assert controller.handle_event(_event(EventType.PAN_MOVE, *end))
    assert controller.handle_event(_event(EventType.PAN_END, *end, **end_kwargs))
    return controller.state


# ---------------------------------------------------------------------
# Idle / unhandled events
# ---------------------------------------------------------------------
def test_pan_move_while_idle_is_not_consumed(start_state, updates):
    """A move without a drag changes nothing"""
    controller = _controller(start_state, updates)

    assert controller.handle_event(_event(EventType.PAN_MOVE, 120, 100)) is False
    assert controller.handle_event(_event(EventType.PAN_END, 120, 100)) is False
    assert controller.state is start_state
    assert controller.phase is ControllerPhase.IDLE
    assert updates == []


def test_unknown_event_type_is_not_consumed(start_state, updates):
    controller = _controller(start_state, updates)
    assert controller.handle_event(_event("pinchstart", 100, 100)) is False
    assert updates == []


def test_drag_start_outside_bounds_is_not_consumed(start_state, updates):
    controller = _controller(start_state, updates, x=50, y=50)
    assert controller.handle_event(_event(EventType.PAN_START, 10, 10)) is False
    assert controller.session is None


def test_event_position_is_relative_to_controller_origin(start_state, updates):
    controller = _controller(start_state, updates, x=50, y=50)
    assert controller.handle_event(_event(EventType.PAN_START, 150, 70))
    assert controller.session.start_screen_pos == (100, 20)


def test_invalid_drag_mode_raises():
    with pytest.raises(ValueError):
        ControllerOptions(drag_mode="spin")


# ---------------------------------------------------------------------
# Pan
# ---------------------------------------------------------------------
def test_drag_start_stores_pan_session(start_state, updates):
    controller = _controller(start_state, updates)
    assert controller.handle_event(_event(EventType.PAN_START, 100, 100))

    session = controller.session
    assert isinstance(session, PanSession)
    assert session.mode is DragMode.PAN
    assert session.start_world_anchor == pytest.approx((0.1, -0.1, 0.0))
    assert session.start_camera_position == (0.0, 0.0, 100.0)
    assert controller.phase is ControllerPhase.DRAGGING

    update = updates[-1]
    assert update.state is start_state
    assert update.transition.duration_ms == 0
    assert update.interaction == InteractionFlags(is_dragging=True)
    assert update.screen_scale_factor == SCREEN_SCALE_FACTOR


def test_pan_move_subtracts_scaled_shift(start_state, updates):
    """Moving the pointer east moves the camera west, scaled by 4 * (1 + distance)"""
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    assert controller.handle_event(_event(EventType.PAN_MOVE, 110, 100))

    factor = 4.0 * (1.0 + 100.0)
    assert controller.state.position == pytest.approx((-0.01 * factor, 0.0, 100.0))
    assert updates[-1].interaction == InteractionFlags(is_dragging=True, is_panning=True)
    assert updates[-1].transition.duration_ms == 0

    factor = 4.0 * (1.0 + geometry_utils.calculate_norm(controller.state.position))
    controller.handle_event(_event(EventType.PAN_MOVE, 100, 110))
    assert controller.state.position == pytest.approx((0.0, 0.01 * factor, 100.0))


def test_pan_speed_follows_the_current_position(start_state, updates):
    """Each move scales by the distance of the camera after the previous move"""
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 0, 0))
    controller.handle_event(_event(EventType.PAN_MOVE, 100, 0))
    first = controller.state.position
    assert first == pytest.approx((-0.1 * 404.0, 0.0, 100.0))

    controller.handle_event(_event(EventType.PAN_MOVE, 200, 0))
    expected_x = -0.2 * 4.0 * (1.0 + math.hypot(first[0], first[2]))
    assert controller.state.position[0] == pytest.approx(expected_x)
    assert controller.state.position[0] < -0.2 * 404.0


def test_pan_keeps_longitude_and_latitude(start_state, updates):
    controller = _controller(start_state, updates)
    state = _drag(controller, (100, 100), (300, 250))
    assert state.longitude == start_state.longitude
    assert state.latitude == start_state.latitude
    assert state.bearing == start_state.bearing
    assert state.pitch == start_state.pitch


def test_pan_reverses_within_a_gesture(start_state, updates):
    """Returning the pointer to its start point returns the camera to its start position"""
    state = start_state.with_orientation(bearing=30.0, pitch=-20.0)
    controller = _controller(state, updates, viewport=None)
    controller.handle_event(_event(EventType.PAN_START, 400, 300))
    controller.handle_event(_event(EventType.PAN_MOVE, 460, 250))
    assert controller.state.position != state.position

    controller.handle_event(_event(EventType.PAN_MOVE, 400, 300))
    assert controller.state.position == pytest.approx(state.position)


def test_pan_uses_frozen_viewport(start_state, updates):
    """Moves are unprojected through the viewport captured at drag start"""
    built = []

    def factory(state, width, height):
        built.append(state)
        return LinearViewport(state, width, height)

    controller = _controller(start_state, updates, viewport=factory)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    for x in range(110, 200, 10):
        controller.handle_event(_event(EventType.PAN_MOVE, x, 100))

    assert built == [start_state]


def test_pan_speed_grows_with_distance(updates):
    """The same drag moves the camera farther when it is higher up"""
    def displacement(altitude):
        state = ViewportState(position=(0.0, 0.0, altitude), pitch=-30.0, longitude=-100.0, latitude=40.0)
        controller = _controller(state, [], viewport=None)
        moved = _drag(controller, (400, 300), (450, 320))
        return geometry_utils.calculate_distance(state.position, moved.position)

    low = displacement(10.0)
    high = displacement(1000.0)
    assert high > low
    assert high / low == pytest.approx(1001.0 / 11.0, rel=1e-3)


def test_pan_without_world_anchor_keeps_state(start_state, updates):
    """When the start pixel cannot be unprojected, moves leave the camera alone"""
    controller = _controller(start_state, updates, viewport=BlindViewport)
    assert controller.handle_event(_event(EventType.PAN_START, 100, 100))
    assert controller.session.start_world_anchor is None

    assert controller.handle_event(_event(EventType.PAN_MOVE, 200, 200))
    assert controller.state is start_state
    assert all(math.isfinite(v) for v in controller.state.position)


def test_drag_start_replaces_stale_session(start_state, updates):
    """A drag whose end never arrived is dropped by the next drag start"""
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    controller.handle_event(_event(EventType.PAN_MOVE, 150, 100))
    moved = controller.state

    controller.handle_event(_event(EventType.PAN_START, 300, 300))
    session = controller.session
    assert session.start_screen_pos == (300, 300)
    assert session.start_camera_position == moved.position


def test_pan_end_without_velocity(start_state, updates):
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    controller.handle_event(_event(EventType.PAN_MOVE, 130, 100))
    moved = controller.state

    assert controller.handle_event(_event(EventType.PAN_END, 130, 100))
    assert controller.session is None
    assert controller.state is moved
    assert updates[-1].transition is None
    assert updates[-1].interaction == InteractionFlags()


def test_pan_end_with_velocity_adds_one_inertia_step(start_state, updates):
    """The release step equals a move to the position extrapolated by velocity * T / 2"""
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    controller.handle_event(_event(EventType.PAN_MOVE, 120, 100))
    count = len(updates)

    assert controller.handle_event(_event(
        EventType.PAN_END, 120, 100, velocity=0.5, velocity_x=0.5, velocity_y=-0.2))

    assert len(updates) == count + 1
    update = updates[-1]
    assert update.transition.duration_ms == 200
    assert update.transition.easing is inertia_easing
    assert update.interaction == InteractionFlags(is_dragging=False, is_panning=True)
    assert controller.phase is ControllerPhase.IDLE

    reference = _controller(start_state, [])
    reference.handle_event(_event(EventType.PAN_START, 100, 100))
    reference.handle_event(_event(EventType.PAN_MOVE, 120, 100))
    reference.handle_event(_event(EventType.PAN_MOVE, 120 + 0.5 * 100, 100 - 0.2 * 100))
    assert update.state.position == pytest.approx(reference.state.position)


def test_inertia_duration_follows_options(start_state, updates):
    controller = _controller(start_state, updates, options=ControllerOptions(inertia_ms=400))
    _drag(controller, (100, 100), (120, 100), velocity=1.0, velocity_x=1.0)
    assert updates[-1].transition.duration_ms == 400


def test_inertia_easing_curve():
    assert inertia_easing(0.0) == 0.0
    assert inertia_easing(0.5) == 0.75
    assert inertia_easing(1.0) == 1.0


def test_drag_pan_disabled(start_state, updates):
    controller = _controller(start_state, updates, options=ControllerOptions(drag_pan=False))
    assert controller.handle_event(_event(EventType.PAN_START, 100, 100)) is False
    assert controller.session is None
    # rotation is still available
    assert controller.handle_event(_event(EventType.PAN_START, 100, 100, right_button=True))


def test_pan_never_goes_underground(updates):
    state = ViewportState(position=(0.0, 0.0, 0.5), pitch=-60.0)
    controller = _controller(state, updates, viewport=None)
    for end in [(400, 0), (400, 600), (0, 300), (800, 300)]:
        moved = _drag(controller, (400, 300), end)
        assert moved.altitude >= 0


# ---------------------------------------------------------------------
# Rotate
# ---------------------------------------------------------------------
def test_right_button_drag_rotates(start_state, updates):
    controller = _controller(start_state, updates)
    assert controller.handle_event(_event(EventType.PAN_START, 400, 300, right_button=True))
    assert isinstance(controller.session, RotateSession)

    controller.handle_event(_event(EventType.PAN_MOVE, 800, 300))
    assert controller.state.bearing == pytest.approx(90.0)
    assert controller.state.position == start_state.position
    assert updates[-1].interaction == InteractionFlags(is_dragging=True)

    controller.handle_event(_event(EventType.PAN_MOVE, 400, 0))
    assert controller.state.bearing == pytest.approx(0.0)
    assert controller.state.pitch == pytest.approx(45.0)


def test_rotate_clamps_pitch(start_state, updates):
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 400, 600, modifiers=Modifiers(shift=True)))
    controller.handle_event(_event(EventType.PAN_MOVE, 400, -1200))
    assert controller.state.pitch == 90.0


def test_rotate_end_keeps_state(start_state, updates):
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.PAN_START, 400, 300, right_button=True))
    controller.handle_event(_event(EventType.PAN_MOVE, 600, 300))
    assert controller.handle_event(_event(EventType.PAN_END, 600, 300, velocity=2.0, velocity_x=2.0))
    state = controller.state
    assert state.bearing == pytest.approx(45.0)
    assert updates[-1].transition is None
    assert controller.session is None


@pytest.mark.parametrize("options", [
    ControllerOptions(drag_mode="pan"),
    ControllerOptions(invert_pan=True),
])
def test_pan_mode_flips_primary_drag(start_state, updates, options):
    controller = _controller(start_state, updates, options=options)
    controller.handle_event(_event(EventType.PAN_START, 100, 100))
    assert controller.session.mode is DragMode.ROTATE

    controller.handle_event(_event(EventType.PAN_START, 100, 100, right_button=True))
    assert controller.session.mode is DragMode.PAN


# ---------------------------------------------------------------------
# Wheel zoom
# ---------------------------------------------------------------------
def test_wheel_scale_is_bounded():
    previous = 1.0
    for delta in [1, 10, 50, 100, 300, 1000]:
        scale = wheel_scale(delta, 0.01)
        assert 1.0 < scale < 2.0
        assert scale > previous
        previous = scale
    assert wheel_scale(-100, 0.01) == pytest.approx(1.0 / wheel_scale(100, 0.01))
    assert wheel_scale(0, 0.01) == 1.0


def test_wheel_zooms_along_view_direction(start_state, updates):
    controller = _controller(start_state, updates)
    event = _event(EventType.WHEEL, 400, 300, delta=100)
    assert controller.handle_event(event)
    assert event.default_prevented

    expected = math.log2(2.0 / (1.0 + math.exp(-1.0))) * 4.0
    assert controller.state.position == pytest.approx((0.0, expected, 100.0))

    update = updates[-1]
    assert update.transition.duration_ms == 1
    assert update.transition.around == (400, 300)
    assert update.interaction == InteractionFlags(is_zooming=True, is_panning=True)


def test_smooth_wheel_zoom_transition(start_state, updates):
    options = ControllerOptions(scroll_zoom=ScrollZoomOptions(speed=0.02, smooth=True))
    controller = _controller(start_state, updates, options=options)
    controller.handle_event(_event(EventType.WHEEL, 400, 300, delta=50))

    expected = math.log2(wheel_scale(50, 0.02)) * 4.0
    assert controller.state.position[1] == pytest.approx(expected)
    assert updates[-1].transition.duration_ms == 250


def test_wheel_ignored_when_disabled_or_out_of_bounds(start_state, updates):
    controller = _controller(start_state, updates, options=ControllerOptions(scroll_zoom=False))
    event = _event(EventType.WHEEL, 400, 300, delta=100)
    assert controller.handle_event(event) is False
    assert not event.default_prevented

    controller = _controller(start_state, updates)
    assert controller.handle_event(_event(EventType.WHEEL, 900, 300, delta=100)) is False
    assert updates == []


def test_wheel_zoom_is_monotonic(start_state):
    """Bigger zoom-in deltas bring the camera closer along the view direction"""
    direction = start_state.direction
    advances = []
    for delta in [5, 20, 80, 200, 600]:
        controller = _controller(start_state, [])
        controller.handle_event(_event(EventType.WHEEL, 400, 300, delta=delta))
        moved = geometry_utils.subtract_vectors(controller.state.position, start_state.position)
        advances.append(geometry_utils.dot_product(moved, direction))

    assert all(a > 0 for a in advances)
    assert advances == sorted(advances)
    assert len(set(advances)) == len(advances)


def test_wheel_zoom_in_then_out_returns(updates):
    state = ViewportState(position=(10.0, -5.0, 50.0), bearing=45.0, pitch=-10.0)
    controller = _controller(state, updates)
    controller.handle_event(_event(EventType.WHEEL, 400, 300, delta=120))
    assert controller.state.position != pytest.approx(state.position)

    controller.handle_event(_event(EventType.WHEEL, 400, 300, delta=-120))
    assert controller.state.position == pytest.approx(state.position)


# ---------------------------------------------------------------------
# Double tap
# ---------------------------------------------------------------------
def test_double_tap_zooms_by_distance(start_state, updates):
    controller = _controller(start_state, updates)
    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300))

    expected = math.log2(101.0) * 4.0
    assert controller.state.position == pytest.approx((0.0, expected, 100.0))
    update = updates[-1]
    assert update.transition.duration_ms == 300
    assert update.transition.around == (400, 300)
    assert update.interaction == InteractionFlags(is_zooming=True, is_panning=True)


def test_double_tap_with_function_key_zooms_out(start_state, updates):
    controller = _controller(start_state, updates)
    controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300, modifiers=Modifiers(alt=True)))
    assert controller.state.position == pytest.approx((0.0, -math.log2(101.0) * 4.0, 100.0))


def test_double_tap_cooldown(start_state, updates, clock):
    controller = _controller(start_state, updates, clock=clock)
    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300))
    assert controller.phase is ControllerPhase.BLOCKED

    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300)) is False
    assert controller.handle_event(_event(EventType.PAN_START, 400, 300)) is False

    clock.advance(0.05)
    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300)) is False

    clock.advance(0.06)
    assert controller.phase is ControllerPhase.IDLE
    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300))


def test_double_tap_disabled(start_state, updates):
    controller = _controller(start_state, updates, options=ControllerOptions(double_click_zoom=False))
    assert controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300)) is False


def test_zoom_never_goes_underground(updates):
    """Looking straight down, a large zoom stops at the ground plane"""
    state = ViewportState(position=(0.0, 0.0, 2.0), pitch=-90.0)
    controller = _controller(state, updates)
    controller.handle_event(_event(EventType.DOUBLE_TAP, 400, 300))
    assert controller.state.altitude == 0.0


# ---------------------------------------------------------------------
# Real viewport integration
# ---------------------------------------------------------------------
def test_default_viewport_is_first_person(start_state, updates):
    controller = MapCameraController(start_state, updates.append, width=800, height=600)
    viewport = controller.make_viewport()
    assert isinstance(viewport, FirstPersonViewport)

    controller.handle_event(_event(EventType.PAN_START, 400, 300))
    anchor = controller.session.start_world_anchor
    assert anchor == pytest.approx(viewport.unproject((400, 300, CAMERA_SCREEN_DEPTH)))


def test_drag_right_moves_camera_west(start_state, updates):
    controller = MapCameraController(start_state, updates.append, width=800, height=600)
    state = _drag(controller, (400, 300), (500, 300))
    assert state.position[0] < 0
    assert abs(state.position[1]) < 1e-3 * abs(state.position[0])


def test_set_options_replaces_rotation_speed(start_state, updates):
    controller = _controller(start_state, updates)
    controller.set_options(ControllerOptions(rotate_speed=2.0))

    controller.handle_event(_event(EventType.PAN_START, 100, 100, right_button=True))
    controller.handle_event(_event(EventType.PAN_MOVE, 300, 100, right_button=True))

    # 200 px of an 800 px wide controller is 45 degrees at speed 1
    assert controller.state.bearing == pytest.approx(90.0)
    assert controller.options.rotate_speed == 2.0


def test_pan_back_in_a_second_drag_nearly_returns(start_state, updates):
    """The speed factor grows with distance, so the way back is a little faster"""
    controller = _controller(start_state, updates)
    there = _drag(controller, (100, 100), (110, 100))
    back = _drag(controller, (110, 100), (100, 100))

    moved = geometry_utils.calculate_distance(start_state.position, there.position)
    residual = geometry_utils.calculate_distance(start_state.position, back.position)
    assert moved > 1.0
    assert residual < 0.01 * moved
