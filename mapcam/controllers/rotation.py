"""Rotate-around-position behaviour composed into the camera controller."""
from __future__ import annotations

from dataclasses import dataclass

from mapcam.controllers.gesture_session import RotateSession
from mapcam.core.viewport_state import ScreenPos, ViewportState


@dataclass
class FirstPersonRotation:
    """
    Turns the camera in place.

    A full-width horizontal drag turns the bearing by 180 degrees, a
    full-height vertical drag tilts the pitch by 90 degrees. Dragging up
    tilts the camera up.
    """
    rotate_speed: float = 1.0

    def start(self, state: ViewportState, pos: ScreenPos) -> RotateSession:
        return RotateSession(
            start_screen_pos=pos,
            start_bearing=state.bearing,
            start_pitch=state.pitch,
        )

    def rotate(self, state: ViewportState, session: RotateSession, pos: ScreenPos,
               width: float, height: float) -> ViewportState:
        dx = pos[0] - session.start_screen_pos[0]
        dy = pos[1] - session.start_screen_pos[1]
        delta_bearing = dx / width * 180.0 * self.rotate_speed
        delta_pitch = dy / height * 90.0 * self.rotate_speed
        return state.with_orientation(
            bearing=session.start_bearing + delta_bearing,
            pitch=session.start_pitch - delta_pitch,
        )
