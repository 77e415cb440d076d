"""Translate Qt mouse and wheel events into camera controller gestures."""
from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QMouseEvent, QWheelEvent

from mapcam.controllers.events import EventType, GestureEvent, Modifiers

logger = logging.getLogger(__name__)

# Qt reports 120 units per wheel notch; the controller expects ~100 per notch.
WHEEL_DELTA_PER_NOTCH = 100.0
QT_ANGLE_PER_NOTCH = 120.0

DEFAULT_DRAG_THRESHOLD = 3.0
# samples older than this at release are too stale to describe a fling
VELOCITY_INTERVAL_MS = 25.0

GestureHandler = Callable[[GestureEvent], bool]


def modifiers_from_qt(mods) -> Modifiers:
    return Modifiers(
        shift=bool(mods & Qt.KeyboardModifier.ShiftModifier),
        ctrl=bool(mods & Qt.KeyboardModifier.ControlModifier),
        alt=bool(mods & Qt.KeyboardModifier.AltModifier),
        meta=bool(mods & Qt.KeyboardModifier.MetaModifier),
    )


class QtGestureAdapter:
    """
    Recognizes pan, double-tap and wheel gestures from raw Qt input.

    - A press only arms a drag; ``panstart`` is sent once the pointer moved
      farther than ``drag_threshold`` pixels.
    - ``panend`` carries the pointer velocity (px/ms) of the last move.
    - Every method returns whether the handler consumed the gesture.
    """

    def __init__(self, handler: GestureHandler, drag_threshold: float = DEFAULT_DRAG_THRESHOLD,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.handler = handler
        self.drag_threshold = drag_threshold
        self._clock = clock

        self._press_pos: Optional[tuple[float, float]] = None
        self._right_button = False
        self._modifiers = Modifiers()
        self._dragging = False
        self._last_sample: Optional[tuple[float, float, float]] = None  # (t_ms, x, y)
        self._velocity = (0.0, 0.0)

    @property
    def dragging(self) -> bool:
        return self._dragging

    def mouse_press(self, event: QMouseEvent) -> bool:
        pos = event.position()
        self._press_pos = (pos.x(), pos.y())
        self._right_button = event.button() == Qt.MouseButton.RightButton
        self._modifiers = modifiers_from_qt(event.modifiers())
        self._dragging = False
        self._last_sample = (self._now_ms(), pos.x(), pos.y())
        self._velocity = (0.0, 0.0)
        return True

    def mouse_move(self, event: QMouseEvent) -> bool:
        if self._press_pos is None:
            return False

        pos = event.position()
        x, y = pos.x(), pos.y()
        self._track_velocity(x, y)

        if not self._dragging:
            moved = math.hypot(x - self._press_pos[0], y - self._press_pos[1])
            if moved <= self.drag_threshold:
                return False
            self._dragging = True
            return self._send(EventType.PAN_START, (x, y))
        return self._send(EventType.PAN_MOVE, (x, y))

    def mouse_release(self, event: QMouseEvent) -> bool:
        was_dragging = self._dragging
        self._press_pos = None
        self._dragging = False
        if not was_dragging:
            return False

        pos = event.position()
        self._refresh_velocity(pos.x(), pos.y())
        vx, vy = self._velocity
        return self._send(
            EventType.PAN_END,
            (pos.x(), pos.y()),
            velocity=max(abs(vx), abs(vy)),
            velocity_x=vx,
            velocity_y=vy,
        )

    def mouse_double_click(self, event: QMouseEvent) -> bool:
        pos = event.position()
        return self.handler(GestureEvent(
            type=EventType.DOUBLE_TAP,
            offset_center=(pos.x(), pos.y()),
            modifiers=modifiers_from_qt(event.modifiers()),
            src_event=event,
        ))

    def wheel(self, event: QWheelEvent) -> bool:
        pos = event.position()
        delta = event.angleDelta().y() / QT_ANGLE_PER_NOTCH * WHEEL_DELTA_PER_NOTCH
        return self.handler(GestureEvent(
            type=EventType.WHEEL,
            offset_center=(pos.x(), pos.y()),
            delta=delta,
            modifiers=modifiers_from_qt(event.modifiers()),
            src_event=event,
        ))

    def _send(self, event_type: EventType, pos: tuple[float, float], **kwargs) -> bool:
        return self.handler(GestureEvent(
            type=event_type,
            offset_center=pos,
            right_button=self._right_button,
            modifiers=self._modifiers,
            **kwargs,
        ))

    def _track_velocity(self, x: float, y: float) -> None:
        now = self._now_ms()
        if self._last_sample is not None:
            t0, x0, y0 = self._last_sample
            dt = now - t0
            if dt > 0:
                self._velocity = ((x - x0) / dt, (y - y0) / dt)
        self._last_sample = (now, x, y)

    def _refresh_velocity(self, x: float, y: float) -> None:
        """Recompute the velocity over the whole gap when the last move is stale."""
        if self._last_sample is None:
            return
        t0, x0, y0 = self._last_sample
        dt = self._now_ms() - t0
        if dt > VELOCITY_INTERVAL_MS:
            self._velocity = ((x - x0) / dt, (y - y0) / dt)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0
