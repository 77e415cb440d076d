"""Immutable viewport state and the records emitted alongside it."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Tuple

from mapcam.core import geometry_utils
from mapcam.core.geometry_utils import Vector3

Easing = Callable[[float], float]
ScreenPos = Tuple[float, float]

DEFAULT_MIN_PITCH = -90.0
DEFAULT_MAX_PITCH = 90.0


def linear_easing(t: float) -> float:
    return t


def inertia_easing(t: float) -> float:
    """Ease-out used for the release step after a fling."""
    return 1 - (1 - t) * (1 - t)


@dataclass(frozen=True)
class ViewportState:
    """
    Immutable camera snapshot.

    Key points:
    - ``position`` is (east, north, up) in meters relative to the
      (longitude, latitude) anchor at ground level.
    - Panning and zooming only move ``position``. The lon/lat anchor is left
      unchanged by the camera controller.
    - Pitch is clamped to [min_pitch, max_pitch] on construction.
    """
    position: Vector3 = (0.0, 0.0, 0.0)
    bearing: float = 0.0
    pitch: float = 0.0
    longitude: float = 0.0
    latitude: float = 0.0
    zoom: Optional[float] = None
    min_pitch: float = DEFAULT_MIN_PITCH
    max_pitch: float = DEFAULT_MAX_PITCH

    def __post_init__(self):
        object.__setattr__(self, "position", tuple(float(v) for v in self.position))
        object.__setattr__(self, "bearing", float(self.bearing))
        object.__setattr__(
            self, "pitch", min(max(float(self.pitch), self.min_pitch), self.max_pitch))

    @property
    def altitude(self) -> float:
        return self.position[2]

    @property
    def direction(self) -> Vector3:
        """Unit view direction in the east/north/up frame."""
        return geometry_utils.direction_from_bearing_pitch(self.bearing, self.pitch)

    @property
    def distance_to_origin(self) -> float:
        """Distance from the lon/lat anchor (world origin) to the camera, in meters."""
        return geometry_utils.calculate_norm(self.position)

    def with_position(self, position: Vector3) -> ViewportState:
        """Return a copy with a new camera position."""
        return replace(self, position=position)

    def with_orientation(self, bearing: float, pitch: float) -> ViewportState:
        """Return a copy with a new bearing and (clamped) pitch."""
        return replace(self, bearing=bearing, pitch=pitch)

    def to_dict(self) -> dict:
        return {
            "position": list(self.position),
            "bearing": self.bearing,
            "pitch": self.pitch,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "zoom": self.zoom,
        }


@dataclass(frozen=True)
class TransitionSpec:
    """How the host should animate from the previous state to the new one."""
    duration_ms: float
    easing: Easing = linear_easing
    around: Optional[ScreenPos] = None


@dataclass(frozen=True)
class InteractionFlags:
    """UI feedback hints (cursor state etc.). Never read back by the controller."""
    is_dragging: bool = False
    is_panning: bool = False
    is_zooming: bool = False


@dataclass(frozen=True)
class ViewportUpdate:
    """A single emission of the camera controller."""
    state: ViewportState
    transition: Optional[TransitionSpec] = None
    interaction: InteractionFlags = field(default_factory=InteractionFlags)
    screen_scale_factor: float = 1.0
