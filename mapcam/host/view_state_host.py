"""Host-level policy for the first-person view and its overhead minimap."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Optional

from mapcam.controllers.events import EventType, GestureEvent
from mapcam.core.viewport_state import InteractionFlags, TransitionSpec, ViewportState, ViewportUpdate
from mapcam.utils.log_util import log_io

if TYPE_CHECKING:
    from mapcam.controllers.camera_controller import MapCameraController

logger = logging.getLogger(__name__)

MIN_ALTITUDE = 1.0
DEFAULT_MINIMAP_ZOOM = 16
ALTITUDE_WHEEL_FACTOR = -0.1

INITIAL_MAIN_STATE = ViewportState(
    position=(0.0, 0.0, 100.0),
    bearing=0.0,
    pitch=25.0,
    longitude=-100.0,
    latitude=40.0,
    zoom=20,
    min_pitch=-90.0,
    max_pitch=90.0,
)

INITIAL_MINIMAP_STATE = ViewportState(
    longitude=-100.0,
    latitude=40.0,
    zoom=15,
    min_pitch=0.0,
    max_pitch=80.0,
)


class PointerRegion(Enum):
    """Which part of the page the pointer is over."""
    TOP_DOWN = auto()
    ALTITUDE = auto()
    FIRST_PERSON = auto()


@dataclass(frozen=True)
class HostLayout:
    minimap_x: float = 0.0
    minimap_y: float = 0.0
    minimap_width: float = 300.0
    minimap_height: float = 300.0
    # top share of the page that drives altitude instead of the camera controller
    altitude_band: float = 0.25

    def in_minimap(self, x: float, y: float) -> bool:
        return (self.minimap_x <= x <= self.minimap_x + self.minimap_width
                and self.minimap_y <= y <= self.minimap_y + self.minimap_height)


def clamp_altitude(state: ViewportState, floor: float = MIN_ALTITUDE) -> ViewportState:
    """Keep the camera above the ground plane."""
    x, y, z = state.position
    if z >= floor:
        return state
    return state.with_position((x, y, floor))


def mirror_to_minimap(state: ViewportState, minimap: ViewportState) -> ViewportState:
    """Copy the main camera into the minimap; the minimap never tilts below top-down."""
    return replace(
        minimap,
        longitude=state.longitude,
        latitude=state.latitude,
        bearing=state.bearing,
        position=state.position,
        zoom=state.zoom or DEFAULT_MINIMAP_ZOOM,
        pitch=max(0.0, state.pitch),
    )


def pitch_dial_angle(pitch: float) -> float:
    """Needle angle of the pitch dial: 0 looks straight down, 180 straight up."""
    return 90.0 + pitch


ViewStateListener = Callable[[ViewportState, ViewportState], None]


class ViewStateHost:
    """
    Owns the ``main`` and ``minimap`` view states.

    Responsible for:
    - Applying controller updates (altitude floor, mirroring into the minimap).
    - Letting minimap gestures steer the main camera.
    - Pushing the clamped state back into the main controller.
    - Routing gestures to the controller under the pointer.
    - The altitude strip at the top of the page.
    """

    def __init__(
            self,
            main: ViewportState | None = None,
            minimap: ViewportState | None = None,
            layout: HostLayout | None = None,
    ) -> None:
        self.layout = layout or HostLayout()
        self._main = clamp_altitude(main or INITIAL_MAIN_STATE)
        minimap = minimap or INITIAL_MINIMAP_STATE
        # the minimap shares the main camera from the start and keeps its own zoom until the first commit
        self._minimap = replace(mirror_to_minimap(self._main, minimap), zoom=minimap.zoom)
        self._region = PointerRegion.FIRST_PERSON

        self._main_controller: MapCameraController | None = None
        self._minimap_controller: MapCameraController | None = None
        self._listeners: list[ViewStateListener] = []

        self.last_transition: Optional[TransitionSpec] = None
        self.interaction = InteractionFlags()
        self.screen_scale_factor = 1.0

    @property
    def main_state(self) -> ViewportState:
        return self._main

    @property
    def minimap_state(self) -> ViewportState:
        return self._minimap

    @property
    def region(self) -> PointerRegion:
        return self._region

    @property
    def main_controller_enabled(self) -> bool:
        return self._region is not PointerRegion.ALTITUDE

    def attach_main_controller(self, controller: MapCameraController) -> None:
        controller.set_view_state(self._main)
        controller.set_update_sink(self.on_main_update)
        self._main_controller = controller

    def attach_minimap_controller(self, controller: MapCameraController) -> None:
        controller.set_view_state(self._minimap)
        controller.set_update_sink(self.on_minimap_update)
        self._minimap_controller = controller

    def add_listener(self, callback: ViewStateListener) -> None:
        """
        Add a callback for committed view states.

        Callback signature: callback(main: ViewportState, minimap: ViewportState) -> None
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: ViewStateListener) -> None:
        self._listeners.remove(callback)

    def on_main_update(self, update: ViewportUpdate) -> None:
        self._record(update)
        self.commit(update.state)

    def on_minimap_update(self, update: ViewportUpdate) -> None:
        """
        The minimap steers the main camera.

        Main takes the minimap's lon/lat, bearing and camera position. Main
        keeps its own pitch, since the minimap cannot look below the horizon.
        """
        self._record(update)
        state = update.state
        main = replace(
            self._main,
            longitude=state.longitude,
            latitude=state.latitude,
            bearing=state.bearing,
            position=state.position,
        )
        self.commit(main)

    def _record(self, update: ViewportUpdate) -> None:
        self.last_transition = update.transition
        self.interaction = update.interaction
        self.screen_scale_factor = update.screen_scale_factor

    @log_io()
    def commit(self, state: ViewportState) -> ViewportState:
        """Apply a new main view state and mirror it into the minimap."""
        clamped = clamp_altitude(state)
        if clamped is not state:
            logger.debug("Altitude %.3f clamped to %.1f", state.altitude, MIN_ALTITUDE)
        self._main = clamped
        self._minimap = mirror_to_minimap(clamped, self._minimap)
        if self._main_controller is not None:
            self._main_controller.set_view_state(clamped)
        if self._minimap_controller is not None:
            self._minimap_controller.set_view_state(self._minimap)
        self._notify()
        return clamped

    def update_region(self, x: float, y: float, page_height: float) -> PointerRegion:
        """Classify the pointer position; switching into the altitude strip disables the main controller."""
        if self.layout.in_minimap(x, y):
            region = PointerRegion.TOP_DOWN
        elif y < page_height * self.layout.altitude_band:
            region = PointerRegion.ALTITUDE
        else:
            region = PointerRegion.FIRST_PERSON

        if region is not self._region:
            logger.debug("Pointer region %s -> %s", self._region.name, region.name)
            self._region = region
        return region

    def dispatch(self, event: GestureEvent) -> bool:
        """
        Offer a gesture to the minimap first, then to the main view.

        A main-view drag that wandered into the altitude strip still gets its
        ``panend``, so the controller does not keep a dangling session.
        """
        if self._minimap_controller is not None and self._minimap_controller.handle_event(event):
            return True
        main = self._main_controller
        if main is None:
            return False
        if self.main_controller_enabled:
            return main.handle_event(event)
        if event.type == EventType.PAN_END and main.is_dragging():
            return main.handle_event(event)
        return False

    def altitude_wheel(self, delta_x: float, delta_y: float) -> bool:
        """
        Raise or lower the main camera from the altitude strip.

        Vertical wheel motion changes altitude, horizontal wheel motion slides
        the camera east/west scaled by the bearing.
        """
        if self._region is not PointerRegion.ALTITUDE:
            return False

        dy = -delta_y * ALTITUDE_WHEEL_FACTOR
        dx = delta_x * ALTITUDE_WHEEL_FACTOR
        adjustment = math.cos(math.radians(self._main.bearing))

        east, north, altitude = self._main.position
        new_position = (east - dx * adjustment, north, max(altitude - dy, MIN_ALTITUDE))
        self.commit(self._main.with_position(new_position))
        return True

    def to_dict(self) -> dict:
        return {"main": self._main.to_dict(), "minimap": self._minimap.to_dict()}

    def _notify(self) -> None:
        for callback in self._listeners:
            try:
                callback(self._main, self._minimap)
            except Exception as e:
                logger.exception(f"Error in view state listener: {e}")
