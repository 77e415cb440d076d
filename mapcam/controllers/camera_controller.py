"""
First-person map camera controller.

Turns pan/wheel/double-tap gestures into a stream of immutable
:class:`ViewportState` updates. Zooming moves the camera along its view
direction instead of scaling the viewport, and rotation happens around the
camera position.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from mapcam.controllers.events import EventType, GestureEvent
from mapcam.controllers.gesture_session import (
    ControllerPhase,
    DragMode,
    GestureSession,
    PanSession,
)
from mapcam.controllers.rotation import FirstPersonRotation
from mapcam.core import geometry_utils
from mapcam.core.viewport import FirstPersonViewport, Viewport
from mapcam.core.viewport_state import (
    InteractionFlags,
    ScreenPos,
    TransitionSpec,
    ViewportState,
    ViewportUpdate,
    inertia_easing,
)

logger = logging.getLogger(__name__)

# Depth of the plane (in [0, 1] screen depth) that pan anchors are unprojected onto.
CAMERA_SCREEN_DEPTH = 0.1

SCREEN_SCALE_FACTOR = 1.5

NO_TRANSITION = TransitionSpec(duration_ms=0)

DRAG_MODES = ("pan", "rotate")

ViewportFactory = Callable[[ViewportState, float, float], Viewport]
UpdateSink = Callable[[ViewportUpdate], None]


@dataclass(frozen=True)
class ScrollZoomOptions:
    speed: float = 0.01
    smooth: bool = False


@dataclass(frozen=True)
class ControllerOptions:
    """Recognized controller options. Speeds are unitless multipliers."""
    drag_pan: bool = True
    drag_mode: str = "rotate"
    invert_pan: bool = False
    scroll_zoom: Union[bool, ScrollZoomOptions] = True
    double_click_zoom: bool = True
    inertia_ms: float = 200.0
    pan_speed: float = 4.0
    zoom_speed: float = 4.0
    rotate_speed: float = 1.0
    double_tap_block_ms: float = 100.0
    smooth_zoom_ms: float = 250.0
    transition_ms: float = 300.0

    def __post_init__(self):
        if self.drag_mode not in DRAG_MODES:
            raise ValueError(f"drag_mode must be one of {DRAG_MODES}, got {self.drag_mode!r}")
        if self.inertia_ms < 0:
            raise ValueError("inertia_ms must not be negative")

    @property
    def scroll_zoom_options(self) -> Optional[ScrollZoomOptions]:
        """Effective scroll zoom options, or None when scroll zoom is off."""
        if self.scroll_zoom is True:
            return ScrollZoomOptions()
        if not self.scroll_zoom:
            return None
        return self.scroll_zoom


def wheel_scale(delta: float, speed: float) -> float:
    """
    Multiplicative zoom for one wheel event.

    The logistic curve keeps one tick within (1, 2) however large ``delta``
    is. Negative deltas (zoom out) give the reciprocal.
    """
    scale = 2.0 / (1.0 + math.exp(-abs(delta * speed)))
    if delta < 0 and scale != 0:
        scale = 1.0 / scale
    return scale


def _default_viewport_factory(state: ViewportState, width: float, height: float) -> Viewport:
    return FirstPersonViewport(state, width, height)


def _finite(vector) -> bool:
    return all(math.isfinite(v) for v in vector)


def _above_ground(position):
    return (position[0], position[1], max(position[2], 0.0))


class MapCameraController:
    """
    Gesture interpreter for one view.

    Responsible for:
    - Interpreting panstart/panmove/panend/wheel/doubletap events.
    - Holding the gesture session of the current drag (if any).
    - Emitting a :class:`ViewportUpdate` per handled event.

    Every ``handle_event`` call returns True if the event was consumed and
    False otherwise, so unconsumed events can be offered to another view.
    """

    def __init__(
            self,
            state: ViewportState,
            on_update: UpdateSink | None = None,
            *,
            width: float,
            height: float,
            x: float = 0.0,
            y: float = 0.0,
            options: ControllerOptions | None = None,
            viewport_factory: ViewportFactory | None = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._on_update = on_update
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.options = options or ControllerOptions()
        self.rotation = FirstPersonRotation(self.options.rotate_speed)
        self._viewport_factory = viewport_factory or _default_viewport_factory
        self._clock = clock

        self._session: GestureSession | None = None
        self._blocked_until: float | None = None

        self._handlers: dict[EventType, Callable[[GestureEvent], bool]] = {
            EventType.PAN_START: self._handle_drag_start,
            EventType.PAN_MOVE: self._handle_drag_move,
            EventType.PAN_END: self._handle_drag_end,
            EventType.WHEEL: self._handle_wheel,
            EventType.DOUBLE_TAP: self._handle_double_tap,
        }

    # ----------------------------------------------------------------
    # Public API
    # ----------------------------------------------------------------
    @property
    def state(self) -> ViewportState:
        """Current cached camera state."""
        return self._state

    @property
    def session(self) -> GestureSession | None:
        return self._session

    @property
    def phase(self) -> ControllerPhase:
        if self._session is not None:
            return ControllerPhase.DRAGGING
        if self.is_blocked():
            return ControllerPhase.BLOCKED
        return ControllerPhase.IDLE

    def is_dragging(self) -> bool:
        return self._session is not None

    def set_view_state(self, state: ViewportState) -> None:
        """Replace the cached state, e.g. after the host clamped it."""
        self._state = state

    def set_options(self, options: ControllerOptions) -> None:
        self.options = options
        self.rotation = FirstPersonRotation(options.rotate_speed)

    def set_bounds(self, x: float, y: float, width: float, height: float) -> None:
        self.x, self.y, self.width, self.height = x, y, width, height

    def set_update_sink(self, on_update: UpdateSink | None) -> None:
        self._on_update = on_update

    def make_viewport(self, state: ViewportState | None = None) -> Viewport:
        return self._viewport_factory(state or self._state, self.width, self.height)

    def get_center(self, event: GestureEvent) -> ScreenPos:
        """Event position relative to this controller's origin."""
        return (event.offset_center[0] - self.x, event.offset_center[1] - self.y)

    def is_point_in_bounds(self, pos: ScreenPos) -> bool:
        return 0 <= pos[0] <= self.width and 0 <= pos[1] <= self.height

    def is_blocked(self) -> bool:
        if self._blocked_until is None:
            return False
        if self._clock() < self._blocked_until:
            return True
        self._blocked_until = None
        return False

    def block_events(self, duration_ms: float) -> None:
        """Reject drag and double-tap starts for ``duration_ms``."""
        self._blocked_until = self._clock() + duration_ms / 1000.0

    def handle_event(self, event: GestureEvent) -> bool:
        try:
            event_type = EventType(event.type)
        except ValueError:
            logger.debug("Ignoring unrecognized event type: %s", event.type)
            return False
        return self._handlers[event_type](event)

    # ----------------------------------------------------------------
    # Drag
    # ----------------------------------------------------------------
    def _handle_drag_start(self, event: GestureEvent) -> bool:
        if self.is_blocked():
            return False

        pos = self.get_center(event)
        if not self.is_point_in_bounds(pos):
            return False

        alternate_mode = event.modifiers.function_key or event.right_button
        if self.options.invert_pan or self.options.drag_mode == "pan":
            alternate_mode = not alternate_mode

        if not alternate_mode and not self.options.drag_pan:
            return False

        # a stale session from an abandoned drag is dropped here
        if alternate_mode:
            self._session = self.rotation.start(self._state, pos)
        else:
            self._session = self._store_pan_start_state(pos)
        logger.debug("Drag start (%s) at %s", self._session.mode.name, pos)

        self._emit(self._state, NO_TRANSITION, InteractionFlags(is_dragging=True))
        return True

    def _handle_drag_move(self, event: GestureEvent) -> bool:
        session = self._session
        if session is None:
            return False

        pos = self.get_center(event)
        if session.mode is DragMode.PAN:
            new_state = self._compute_pan_move_state(session, pos)
            flags = InteractionFlags(is_dragging=True, is_panning=True)
        else:
            new_state = self.rotation.rotate(self._state, session, pos, self.width, self.height)
            flags = InteractionFlags(is_dragging=True)

        self._emit(new_state, NO_TRANSITION, flags)
        return True

    def _handle_drag_end(self, event: GestureEvent) -> bool:
        session = self._session
        if session is None:
            return False
        self._session = None

        inertia = self.options.inertia_ms
        if session.mode is DragMode.PAN and inertia and event.velocity:
            pos = self.get_center(event)
            end_pos = (
                pos[0] + event.velocity_x * inertia / 2,
                pos[1] + event.velocity_y * inertia / 2,
            )
            new_state = self._compute_pan_move_state(session, end_pos)
            logger.debug("Pan end with inertia towards %s", end_pos)
            self._emit(
                new_state,
                TransitionSpec(duration_ms=inertia, easing=inertia_easing),
                InteractionFlags(is_dragging=False, is_panning=True),
            )
        else:
            logger.debug("Drag end (%s)", session.mode.name)
            self._emit(self._state, None, InteractionFlags())
        return True

    def _store_pan_start_state(self, pos: ScreenPos) -> PanSession:
        """
        Record everything a pan drag needs.

        Stores the anchor under the pointer (lon/lat/alt), the camera position in
        meters and the viewport, so every move of the drag uses the same projection.
        """
        viewport = self.make_viewport(self._state)
        anchor = viewport.unproject((pos[0], pos[1], CAMERA_SCREEN_DEPTH))
        if anchor is None:
            logger.debug("Pan start at %s did not hit the world", pos)
        return PanSession(
            start_screen_pos=pos,
            start_world_anchor=anchor,
            start_camera_position=self._state.position,
            anchor_viewport=viewport,
        )

    def _compute_pan_move_state(self, session: PanSession, pos: ScreenPos) -> ViewportState:
        """
        Move the camera in the plane so the anchor follows the pointer.

        Only the camera position changes, the lon/lat anchor of the state does not.
        """
        anchor = session.start_world_anchor
        if anchor is None:
            return self._state

        viewport = session.anchor_viewport
        current = viewport.unproject((pos[0], pos[1], CAMERA_SCREEN_DEPTH))
        if current is None:
            return self._state

        meters_per_unit = viewport.get_distance_scales(anchor).meters_per_unit
        shift = (
            (current[0] - anchor[0]) * meters_per_unit[0],
            (current[1] - anchor[1]) * meters_per_unit[1],
            current[2] - anchor[2],
        )

        # the world origin is the lon/lat anchor, so the norm is the camera distance to it
        distance = geometry_utils.calculate_norm(self._state.position)
        pan_speed = self.options.pan_speed * (1.0 + distance)

        new_position = geometry_utils.subtract_vectors(
            session.start_camera_position,
            geometry_utils.scale_vector(shift, pan_speed),
        )
        if not _finite(new_position):
            return self._state
        return self._state.with_position(_above_ground(new_position))

    # ----------------------------------------------------------------
    # Zoom
    # ----------------------------------------------------------------
    def _handle_wheel(self, event: GestureEvent) -> bool:
        scroll = self.options.scroll_zoom_options
        if scroll is None:
            return False

        pos = self.get_center(event)
        if not self.is_point_in_bounds(pos):
            return False
        event.prevent_default()

        scale = wheel_scale(event.delta, scroll.speed)
        new_state = self._zoom(scale)
        duration = self.options.smooth_zoom_ms if scroll.smooth else 1
        self._emit(
            new_state,
            TransitionSpec(duration_ms=duration, around=pos),
            InteractionFlags(is_zooming=True, is_panning=True),
        )
        return True

    def _handle_double_tap(self, event: GestureEvent) -> bool:
        if self.is_blocked() or not self.options.double_click_zoom:
            return False

        pos = self.get_center(event)
        if not self.is_point_in_bounds(pos):
            return False

        # zoom further the farther the camera is from the origin
        scale = 1.0 + self._state.distance_to_origin
        if event.modifiers.function_key:
            scale = 1.0 / scale

        new_state = self._zoom(scale)
        self._emit(
            new_state,
            TransitionSpec(duration_ms=self.options.transition_ms, around=pos),
            InteractionFlags(is_zooming=True, is_panning=True),
        )
        self.block_events(self.options.double_tap_block_ms)
        return True

    def _zoom(self, scale: float) -> ViewportState:
        """Dolly along the view direction by ``log2(scale) * zoom_speed`` meters."""
        if scale <= 0:
            return self._state
        return self._move(self._state.direction, math.log2(scale) * self.options.zoom_speed)

    def _move(self, direction, distance: float) -> ViewportState:
        delta = geometry_utils.scale_vector(direction, distance)
        new_position = geometry_utils.add_vectors(self._state.position, delta)
        if not _finite(new_position):
            return self._state
        return self._state.with_position(_above_ground(new_position))

    # ----------------------------------------------------------------
    # Output
    # ----------------------------------------------------------------
    def _emit(self, state: ViewportState, transition: TransitionSpec | None,
              interaction: InteractionFlags) -> None:
        self._state = state
        update = ViewportUpdate(
            state=state,
            transition=transition,
            interaction=interaction,
            screen_scale_factor=SCREEN_SCALE_FACTOR,
        )
        if self._on_update is not None:
            self._on_update(update)
