"""Core components layer - shared, view-independent functionality."""

from mapcam.core.geometry_utils import (
    Vector3,
    add_vectors,
    calculate_distance,
    calculate_norm,
    scale_vector,
    subtract_vectors,
)
from mapcam.core.viewport import DistanceScales, FirstPersonViewport, Viewport
from mapcam.core.viewport_state import (
    InteractionFlags,
    TransitionSpec,
    ViewportState,
    ViewportUpdate,
)

__all__ = [
    "Vector3",
    "add_vectors",
    "calculate_distance",
    "calculate_norm",
    "scale_vector",
    "subtract_vectors",
    "DistanceScales",
    "FirstPersonViewport",
    "Viewport",
    "InteractionFlags",
    "TransitionSpec",
    "ViewportState",
    "ViewportUpdate",
]
