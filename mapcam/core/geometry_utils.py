"""Small 3D vector helpers on plain tuples, in the east/north/up frame."""
from __future__ import annotations

import math
from typing import Tuple

Vector3 = Tuple[float, float, float]


def add_vectors(vector1: Vector3, vector2: Vector3) -> Vector3:
    return (
        vector1[0] + vector2[0],
        vector1[1] + vector2[1],
        vector1[2] + vector2[2],
    )


def subtract_vectors(vector1: Vector3, vector2: Vector3) -> Vector3:
    """``vector1 - vector2``"""
    return (
        vector1[0] - vector2[0],
        vector1[1] - vector2[1],
        vector1[2] - vector2[2],
    )


def scale_vector(vector: Vector3, factor: float) -> Vector3:
    return (vector[0] * factor, vector[1] * factor, vector[2] * factor)


def calculate_norm(vector: Vector3) -> float:
    return math.sqrt(vector[0] ** 2 + vector[1] ** 2 + vector[2] ** 2)


def calculate_distance(start_point: Vector3, end_point: Vector3) -> float:
    """Euclidean distance in meters between two camera positions."""
    return calculate_norm(subtract_vectors(end_point, start_point))


def dot_product(vector1: Vector3, vector2: Vector3) -> float:
    return vector1[0] * vector2[0] + vector1[1] * vector2[1] + vector1[2] * vector2[2]


def direction_from_bearing_pitch(bearing: float, pitch: float) -> Vector3:
    """
    Unit view direction for a camera orientation.

    :param bearing: degrees clockwise from north (north = +y, east = +x)
    :param pitch: degrees above the horizon; -90 looks straight down
    :return: (east, north, up) components
    """
    b = math.radians(bearing)
    p = math.radians(pitch)
    return (
        math.cos(p) * math.sin(b),
        math.cos(p) * math.cos(b),
        math.sin(p),
    )


def up_from_bearing_pitch(bearing: float, pitch: float) -> Vector3:
    """Camera up vector. Orthogonal to the view direction at every pitch, +-90 included."""
    b = math.radians(bearing)
    p = math.radians(pitch)
    return (
        -math.sin(p) * math.sin(b),
        -math.sin(p) * math.cos(b),
        math.cos(p),
    )
