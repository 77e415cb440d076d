import json
import logging

from PySide6 import QtCore
from PySide6.QtGui import QMouseEvent, QWheelEvent
from PySide6.QtWidgets import QLabel, QMainWindow, QVBoxLayout, QWidget

from mapcam.app.settings_manager import AppSettingsManager
from mapcam.controllers.camera_controller import MapCameraController
from mapcam.core.viewport_state import ViewportState
from mapcam.host.view_state_host import PointerRegion, ViewStateHost, pitch_dial_angle
from mapcam.ui.qt_input import QT_ANGLE_PER_NOTCH, WHEEL_DELTA_PER_NOTCH, QtGestureAdapter

logger = logging.getLogger(__name__)


class ViewportWidget(QWidget):
    """Input surface covering the first-person view with the minimap inset."""

    def __init__(self, host: ViewStateHost, adapter: QtGestureAdapter, parent=None):
        super().__init__(parent)
        self.host = host
        self.adapter = adapter
        self.setMouseTracking(True)
        self.setMinimumSize(400, 400)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        self.adapter.mouse_press(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        pos = event.position()
        self.host.update_region(pos.x(), pos.y(), self.height())
        self.adapter.mouse_move(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        self.adapter.mouse_release(event)

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        self.adapter.mouse_double_click(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        if self.host.region is PointerRegion.ALTITUDE:
            # page-style deltas: positive scrolls down
            scale = -WHEEL_DELTA_PER_NOTCH / QT_ANGLE_PER_NOTCH
            angle = event.angleDelta()
            if self.host.altitude_wheel(angle.x() * scale, angle.y() * scale):
                event.accept()
            return
        if not self.adapter.wheel(event):
            event.ignore()


class MainWindow(QMainWindow):
    """Demo host: one first-person view, one minimap, the view state as text."""

    def __init__(self, settings_mgr: AppSettingsManager | None = None):
        super().__init__()
        self.setting = settings_mgr or AppSettingsManager()
        self.setWindowTitle("MapCam - First Person Map Viewer")

        self.host = ViewStateHost()
        layout = self.host.layout
        options = self.setting.controller_options()

        self.main_controller = MapCameraController(
            self.host.main_state, width=1200, height=800, options=options)
        self.minimap_controller = MapCameraController(
            self.host.minimap_state,
            x=layout.minimap_x,
            y=layout.minimap_y,
            width=layout.minimap_width,
            height=layout.minimap_height,
            options=options,
        )
        self.host.attach_main_controller(self.main_controller)
        self.host.attach_minimap_controller(self.minimap_controller)
        self.host.add_listener(self._on_view_state_changed)

        self.adapter = QtGestureAdapter(self.host.dispatch)
        self._setup_ui()
        self._on_view_state_changed(self.host.main_state, self.host.minimap_state)

    def _setup_ui(self) -> None:
        central = QWidget(self)
        self.setCentralWidget(central)
        vbox = QVBoxLayout(central)
        vbox.setContentsMargins(0, 0, 0, 0)

        self.viewport_widget = ViewportWidget(self.host, self.adapter, central)
        vbox.addWidget(self.viewport_widget)

        self.state_label = QLabel(self.viewport_widget)
        self.state_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignLeft | QtCore.Qt.AlignmentFlag.AlignTop)
        self.state_label.move(int(self.host.layout.minimap_width) + 20, 100)
        self.state_label.setAttribute(QtCore.Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        self.setGeometry(100, 100, 1200, 800)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        size = self.viewport_widget.size()
        self.main_controller.set_bounds(0, 0, max(size.width(), 1), max(size.height(), 1))

    def _on_view_state_changed(self, main: ViewportState, minimap: ViewportState) -> None:
        text = json.dumps(self.host.to_dict(), indent=2)
        text += f"\n\nPitch dial: {pitch_dial_angle(main.pitch):.1f}"
        text += f"\nCurrent Mode: {self.host.region.name}"
        self.state_label.setText(text)
        self.state_label.adjustSize()
