# NOTE:
# Startup diagnostics (logging / Qt message handler) must run
#  before the QApplication instance is created.
import logging
import sys

from PySide6 import QtWidgets

from mapcam.app.logging_setup import (
    LogSystem,
    apply_logging_policy,
    install_qt_message_handler,
    setup_startup_logging,
)
from mapcam.app.settings_manager import AppSettingsManager
from mapcam.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def main():
    # crash file and excepthook first; LogSystem then takes over the handlers
    setup_startup_logging(app_name="mapcam")
    install_qt_message_handler()
    logs = LogSystem("mapcam")

    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication(sys.argv)

    logger.info("App start")
    settings_mgr = AppSettingsManager()
    apply_logging_policy(logs, settings_mgr)

    main_window = MainWindow(settings_mgr)
    main_window.show()

    # stop the log listener when Qt quits
    app.aboutToQuit.connect(logs.stop)
    rc = app.exec()
    logger.info("App exit (rc=%s)", rc)
    sys.exit(rc)


if __name__ == "__main__":
    main()
