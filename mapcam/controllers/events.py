"""Gesture events consumed by the camera controller."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class EventType(str, Enum):
    PAN_START = "panstart"
    PAN_MOVE = "panmove"
    PAN_END = "panend"
    WHEEL = "wheel"
    DOUBLE_TAP = "doubletap"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Modifiers:
    shift: bool = False
    ctrl: bool = False
    alt: bool = False
    meta: bool = False

    @property
    def function_key(self) -> bool:
        """True if any key that selects the alternate gesture is held."""
        return self.shift or self.ctrl or self.alt or self.meta


@dataclass
class GestureEvent:
    """
    Recognized pointer gesture.

    ``offset_center`` is in host pixels; the controller subtracts its own
    (x, y) origin before using it. Velocities are in pixels per millisecond.
    """
    type: EventType | str
    offset_center: Tuple[float, float]
    delta: float = 0.0
    velocity: float = 0.0
    velocity_x: float = 0.0
    velocity_y: float = 0.0
    right_button: bool = False
    modifiers: Modifiers = Modifiers()
    src_event: Optional[Any] = None
    default_prevented: bool = False

    def prevent_default(self) -> None:
        """Mark the originating device event as handled."""
        self.default_prevented = True
        accept = getattr(self.src_event, "accept", None)
        if callable(accept):
            accept()
