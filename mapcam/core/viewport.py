"""
First-person perspective viewport over a local east/north/up frame.

The viewport is a pure function of the state it was built from, which is what
lets the camera controller freeze one at the start of a drag and keep using it.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

import numpy as np

from mapcam.core import geometry_utils
from mapcam.core.viewport_state import ViewportState

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111_319.49  # at the equator

LngLat = Tuple[float, float]
LngLatAlt = Tuple[float, float, float]


def meters_per_degree(latitude: float) -> Tuple[float, float]:
    """Meters per degree of (longitude, latitude) at ``latitude``."""
    return (METERS_PER_DEGREE_LAT * math.cos(math.radians(latitude)), METERS_PER_DEGREE_LAT)


@dataclass(frozen=True)
class DistanceScales:
    """Per-axis conversion from (degrees lon, degrees lat, meters alt) to meters."""
    meters_per_unit: Tuple[float, float, float]


class Viewport(Protocol):
    """What the camera controller needs from a projection."""

    def unproject(self, xyz: Sequence[float]) -> Optional[LngLatAlt]:
        ...

    def get_distance_scales(self, lnglat: Sequence[float]) -> DistanceScales:
        ...


def look_at(eye, center, up) -> np.ndarray:
    """Right-handed view matrix (camera looks down -Z)."""
    eye = np.asarray(eye, dtype=float)
    f = np.asarray(center, dtype=float) - eye
    f /= np.linalg.norm(f)
    s = np.cross(f, np.asarray(up, dtype=float))
    s /= np.linalg.norm(s)
    u = np.cross(s, f)

    view = np.identity(4)
    view[0, :3] = s
    view[1, :3] = u
    view[2, :3] = -f
    view[:3, 3] = -view[:3, :3] @ eye
    return view


def perspective(fovy: float, aspect: float, near: float, far: float) -> np.ndarray:
    """OpenGL style projection matrix, ``fovy`` in degrees."""
    f = 1.0 / math.tan(math.radians(fovy) / 2.0)
    proj = np.zeros((4, 4))
    proj[0, 0] = f / aspect
    proj[1, 1] = f
    proj[2, 2] = (far + near) / (near - far)
    proj[2, 3] = 2.0 * far * near / (near - far)
    proj[3, 2] = -1.0
    return proj


class FirstPersonViewport:
    """
    Perspective camera placed at ``state.position`` meters from the lon/lat anchor.

    Screen coordinates use a top-left origin in pixels. The third screen
    component is a depth in [0, 1] (0 = near plane, 1 = far plane).
    """

    def __init__(self, state: ViewportState, width: float, height: float,
                 fovy: float = 50.0, near: float = 0.1, far: float = 1000.0) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport size must be positive, got {width}x{height}")
        self.state = state
        self.width = float(width)
        self.height = float(height)
        self.fovy = fovy
        self.near = near
        self.far = far

        eye = state.position
        center = geometry_utils.add_vectors(eye, state.direction)
        up = geometry_utils.up_from_bearing_pitch(state.bearing, state.pitch)
        self.view_matrix = look_at(eye, center, up)
        self.projection_matrix = perspective(fovy, self.width / self.height, near, far)
        self.view_projection_matrix = self.projection_matrix @ self.view_matrix
        try:
            self._inverse = np.linalg.inv(self.view_projection_matrix)
        except np.linalg.LinAlgError:
            logger.warning("Singular view projection matrix for %s", state)
            self._inverse = None

    def unproject(self, xyz: Sequence[float]) -> Optional[LngLatAlt]:
        """
        Convert a screen pixel (with depth) into (longitude, latitude, altitude).

        :return: world position, or None when the pixel cannot be inverted.
        """
        if self._inverse is None:
            return None
        x, y = xyz[0], xyz[1]
        depth = xyz[2] if len(xyz) > 2 else 0.0
        ndc = np.array([
            2.0 * x / self.width - 1.0,
            1.0 - 2.0 * y / self.height,
            2.0 * depth - 1.0,
            1.0,
        ])
        world = self._inverse @ ndc
        if world[3] == 0 or not np.all(np.isfinite(world)):
            return None
        east, north, up = world[:3] / world[3]
        return self._meters_to_lnglat((east, north, up))

    def project(self, lnglatalt: Sequence[float]) -> Optional[Tuple[float, float, float]]:
        """Inverse of :meth:`unproject`: world position to (x, y, depth)."""
        east, north, up = self._lnglat_to_meters(lnglatalt)
        clip = self.view_projection_matrix @ np.array([east, north, up, 1.0])
        if clip[3] == 0:
            return None
        ndc = clip[:3] / clip[3]
        return (
            float((ndc[0] + 1.0) * self.width / 2.0),
            float((1.0 - ndc[1]) * self.height / 2.0),
            float((ndc[2] + 1.0) / 2.0),
        )

    def get_distance_scales(self, lnglat: Sequence[float] | None = None) -> DistanceScales:
        latitude = self.state.latitude if lnglat is None else lnglat[1]
        mx, my = meters_per_degree(latitude)
        return DistanceScales(meters_per_unit=(mx, my, 1.0))

    def _meters_to_lnglat(self, meters) -> LngLatAlt:
        mx, my = meters_per_degree(self.state.latitude)
        return (
            float(self.state.longitude + meters[0] / mx),
            float(self.state.latitude + meters[1] / my),
            float(meters[2]),
        )

    def _lnglat_to_meters(self, lnglatalt) -> Tuple[float, float, float]:
        mx, my = meters_per_degree(self.state.latitude)
        alt = lnglatalt[2] if len(lnglatalt) > 2 else 0.0
        return (
            (lnglatalt[0] - self.state.longitude) * mx,
            (lnglatalt[1] - self.state.latitude) * my,
            alt,
        )
