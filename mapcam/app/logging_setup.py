from __future__ import annotations

import faulthandler
import logging
import logging.config
import os
import queue
import sys
import traceback
from dataclasses import dataclass
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from mapcam.app.settings_manager import AppSettingsManager, RunMode
from mapcam.utils.log_util import level_from_name

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(process)d %(threadName)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(frozen=True)
class LogPaths:
    log_file: Path
    crash_file: Path
    log_dir: Path


@dataclass(frozen=True)
class LogFileSettings:
    """Rotating log file written by the listener thread."""
    filename: Path
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5

    def make_handler(self) -> RotatingFileHandler:
        handler = RotatingFileHandler(
            self.filename,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        return handler


def default_log_dir(app_name: str) -> Path:
    """~/.<app>/logs, or ./logs when the home directory is not writable."""
    base = Path.home() / f".{app_name.lower()}" / "logs"
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError:
        base = Path.cwd() / "logs"
        base.mkdir(parents=True, exist_ok=True)
    return base


def _enable_crash_log(crash_file: Path) -> None:
    try:
        fh = open(crash_file, "w", encoding="utf-8")
    except OSError:
        logging.getLogger(__name__).warning("Crash log unavailable: %s", crash_file)
        return
    faulthandler.enable(file=fh)
    # faulthandler only keeps the file descriptor
    logging.getLogger()._mapcam_crash_fh = fh


def _install_excepthook() -> None:
    def _excepthook(exc_type, exc, tb):
        logging.critical(
            "Uncaught exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc, tb)),
        )

    sys.excepthook = _excepthook


def setup_startup_logging(
        app_name: str,
        *,
        level_file: int = logging.DEBUG,
        level_console: int = logging.INFO,
        max_bytes: int = 2_000_000,
        backup_count: int = 5,
        log_dir: Path | None = None,
    ) -> LogPaths:
    """
    Plain synchronous logging for the first seconds of startup.

    Writes to a rotating file and stdout, dumps native crashes with
    faulthandler, and routes uncaught exceptions to the log.
    """
    log_dir = log_dir or default_log_dir(app_name)
    paths = LogPaths(
        log_file=log_dir / f"{app_name}.log",
        crash_file=log_dir / f"{app_name}.crash.log",
        log_dir=log_dir,
    )

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    file_handler = LogFileSettings(paths.log_file, max_bytes, backup_count).make_handler()
    file_handler.setLevel(level_file)
    root.addHandler(file_handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level_console)
    console.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(console)

    _enable_crash_log(paths.crash_file)
    _install_excepthook()

    log = logging.getLogger(app_name)
    log.info("%s starting...", app_name)
    log.info("python=%s frozen=%s", sys.version.split()[0], getattr(sys, "frozen", False))
    log.info("cwd=%s", os.getcwd())
    log.info("log_file=%s crash_file=%s", paths.log_file, paths.crash_file)
    return paths


def build_config(app_name: str, level: str | None = None) -> dict:
    """dictConfig for the root logger and its console handler."""
    level = level or os.getenv("MAPCAM_LOG_LEVEL", "INFO").upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "standard", "level": "INFO"},
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def file_settings(app_name: str, log_dir: Path | None = None) -> LogFileSettings:
    log_dir = log_dir or default_log_dir(app_name)
    return LogFileSettings(
        filename=log_dir / f"{app_name}.log",
        backup_count=int(os.getenv("MAPCAM_LOG_BACKUP_COUNT", 5)),
    )


class LogSystem:
    """
    Root logger with a console handler and a queue feeding the log file.

    Records are put on a queue by the calling thread; a QueueListener thread
    writes them, so file I/O never blocks the Qt event loop.
    """
    def __init__(self, app_name: str, level: str | None = None, log_dir: Path | None = None):
        logging.config.dictConfig(build_config(app_name, level))
        root = logging.getLogger()
        self._console_handler = next(
            (h for h in root.handlers if type(h) is logging.StreamHandler), None)

        self._queue: queue.Queue = queue.Queue(-1)
        self._queue_handler = QueueHandler(self._queue)
        root.addHandler(self._queue_handler)

        self.file_settings = file_settings(app_name, log_dir)
        self._file_handler = self.file_settings.make_handler()
        self.listener = QueueListener(self._queue, self._file_handler, respect_handler_level=True)
        self.listener.start()

    @classmethod
    def from_levels(cls, app_name: str, root_level: int, console_level: int,
                    file_level: int | None = None) -> LogSystem:
        logs = cls(app_name, logging.getLevelName(root_level))
        logs.apply_levels(root_level, console_level=console_level, file_level=file_level)
        return logs

    def apply_levels(self, root_level: int, console_level: int | None = None,
                     file_level: int | None = None) -> None:
        logging.getLogger().setLevel(root_level)
        if self._console_handler is not None and console_level is not None:
            self._console_handler.setLevel(console_level)
        if file_level is not None:
            self._file_handler.setLevel(file_level)

    def stop(self) -> None:
        """Flush pending records and detach from the root logger."""
        self.listener.stop()
        logging.getLogger().removeHandler(self._queue_handler)
        self._file_handler.close()


def apply_logging_policy(logs: LogSystem, settings: AppSettingsManager) -> None:
    """Everything at DEBUG in development; console filtered by the setting otherwise."""
    mode = getattr(settings, "run_mode", None) or RunMode.PRODUCTION
    if mode in (RunMode.DEVELOPMENT, RunMode.VERBOSE):
        console = logging.DEBUG
    else:
        console = level_from_name(settings.logging_level)
    logs.apply_levels(root_level=logging.DEBUG, console_level=console, file_level=logging.DEBUG)


def install_qt_message_handler() -> None:
    """Forward Qt warnings and errors into the ``Qt`` logger."""
    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except ImportError:
        logging.getLogger(__name__).exception("Failed to install Qt message handler.")
        return

    levels = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }
    qt_logger = logging.getLogger("Qt")

    def handler(msg_type, context, message):
        qt_logger.log(levels.get(msg_type, logging.ERROR), message)

    qInstallMessageHandler(handler)
    qt_logger.info("Qt message handler installed.")
