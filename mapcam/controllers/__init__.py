from mapcam.controllers.camera_controller import (
    ControllerOptions,
    MapCameraController,
    ScrollZoomOptions,
)
from mapcam.controllers.events import EventType, GestureEvent, Modifiers
from mapcam.controllers.gesture_session import ControllerPhase, DragMode

__all__ = [
    "ControllerOptions",
    "MapCameraController",
    "ScrollZoomOptions",
    "EventType",
    "GestureEvent",
    "Modifiers",
    "ControllerPhase",
    "DragMode",
]
