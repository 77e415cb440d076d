import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from mapcam.core.viewport import DistanceScales
from mapcam.core.viewport_state import ViewportState


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class LinearViewport:
    """
    Orthographic stand-in: one pixel is ``k`` degrees, screen y grows southwards.
    Distance scales are 1 so world deltas equal degree deltas.
    """
    def __init__(self, state, width, height, k=0.001):
        self.state = state
        self.width = width
        self.height = height
        self.k = k

    def unproject(self, xyz):
        return (xyz[0] * self.k, -xyz[1] * self.k, 0.0)

    def get_distance_scales(self, lnglat=None):
        return DistanceScales(meters_per_unit=(1.0, 1.0, 1.0))


class BlindViewport(LinearViewport):
    """A viewport whose rays never hit anything."""
    def unproject(self, xyz):
        return None


@pytest.fixture(scope="session")
def qapp():
    from PySide6 import QtWidgets
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication(sys.argv)
    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def start_state():
    return ViewportState(
        position=(0.0, 0.0, 100.0),
        bearing=0.0,
        pitch=0.0,
        longitude=-100.0,
        latitude=40.0,
        zoom=20,
    )


@pytest.fixture
def updates():
    return []
