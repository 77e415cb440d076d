"""Per-drag memory of the camera controller."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from mapcam.core.geometry_utils import Vector3
from mapcam.core.viewport import LngLatAlt, Viewport
from mapcam.core.viewport_state import ScreenPos


class DragMode(Enum):
    PAN = auto()
    ROTATE = auto()


class ControllerPhase(Enum):
    IDLE = auto()
    DRAGGING = auto()
    BLOCKED = auto()


@dataclass(frozen=True)
class PanSession:
    """
    Anchor of a pan drag.

    ``anchor_viewport`` is frozen at drag start and used for every unprojection
    of the drag. ``start_world_anchor`` is None when the start pixel could not
    be unprojected; moves then leave the camera where it is.
    """
    start_screen_pos: ScreenPos
    start_world_anchor: Optional[LngLatAlt]
    start_camera_position: Vector3
    anchor_viewport: Viewport

    mode = DragMode.PAN


@dataclass(frozen=True)
class RotateSession:
    start_screen_pos: ScreenPos
    start_bearing: float
    start_pitch: float

    mode = DragMode.ROTATE


GestureSession = Union[PanSession, RotateSession]
