from __future__ import annotations
from dataclasses import dataclass, asdict, field, fields
from enum import Enum
from typing import Any, Callable, Dict
from PySide6.QtCore import QSettings
import logging

from mapcam.controllers.camera_controller import ControllerOptions, DRAG_MODES, ScrollZoomOptions
from mapcam.utils.log_util import LEVEL_NAMES

logger = logging.getLogger(__name__)


class RunMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    VERBOSE = "verbose"

    def __str__(self):
        return self.value


# ----------------------
# Defaults
# ----------------------
DEFAULTS: Dict[str, Dict[str, Any]] = {
    "general": {
        "run_mode": RunMode.PRODUCTION.value,
        "logging_level": "INFO",
    },
    "controller": {
        "pan_speed": 4.0,
        "zoom_speed": 4.0,
        "inertia_ms": 200.0,
        "scroll_speed": 0.01,
        "smooth_zoom": False,
        "drag_mode": "rotate",
        "invert_pan": False,
        "double_click_zoom": True,
    },
}

SECTIONS = tuple(DEFAULTS)


# ---------------------
# Data model
# ---------------------
@dataclass
class GeneralConfig:
    run_mode: RunMode = RunMode.PRODUCTION
    logging_level: str = "INFO"


@dataclass
class ControllerConfig:
    pan_speed: float = 4.0
    zoom_speed: float = 4.0
    inertia_ms: float = 200.0
    scroll_speed: float = 0.01
    smooth_zoom: bool = False
    drag_mode: str = "rotate"
    invert_pan: bool = False
    double_click_zoom: bool = True


@dataclass
class AppSettingsData:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)


# ----------------------
# Validators: raw value (QSettings strings included) -> typed value.
# A rejected value raises ValueError; _validate substitutes the default.
# ----------------------
_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


def _truthy(s: Any) -> bool:
    if isinstance(s, bool):
        return s
    word = str(s).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {s!r}")


def _run_mode(v: Any) -> RunMode:
    return RunMode(str(v).strip().lower())


def _logging_level(v: Any) -> str:
    name = str(v).strip().upper()
    if name not in LEVEL_NAMES:
        raise ValueError(f"unknown logging level: {v!r}")
    return name


def _number_in(low: float, high: float, include_low: bool = False) -> Callable[[Any], float]:
    def validate(v: Any) -> float:
        if isinstance(v, bool):
            raise ValueError("booleans are not numbers here")
        f = float(v)
        above = f >= low if include_low else f > low
        if not (above and f <= high):
            raise ValueError(f"{f} is outside ({low}, {high}]")
        return f
    return validate


def _drag_mode(v: Any) -> str:
    mode = str(v).strip().lower()
    if mode not in DRAG_MODES:
        raise ValueError(f"unknown drag mode: {v!r}")
    return mode


VALIDATORS: Dict[str, Dict[str, Callable[[Any], Any]]] = {
    "general": {
        "run_mode": _run_mode,
        "logging_level": _logging_level,
    },
    "controller": {
        "pan_speed": _number_in(0.0, 100.0),
        "zoom_speed": _number_in(0.0, 100.0),
        "inertia_ms": _number_in(0.0, 5000.0, include_low=True),
        "scroll_speed": _number_in(0.0, 1.0),
        "smooth_zoom": _truthy,
        "drag_mode": _drag_mode,
        "invert_pan": _truthy,
        "double_click_zoom": _truthy,
    },
}


def _validate(section: str, key: str, v: Any) -> tuple[Any, bool]:
    """(typed value, accepted); rejected values come back as the default."""
    validate = VALIDATORS[section][key]
    try:
        return validate(v), True
    except (TypeError, ValueError):
        return validate(DEFAULTS[section][key]), False


_MODELS = {"general": GeneralConfig, "controller": ControllerConfig}


# ---------------------
# AppSettingsManager
# ---------------------
class AppSettingsManager:
    """
    Persistent application settings.

    Every key starts from DEFAULTS and is overridden by the stored QSettings
    value when there is one. Stored and written values go through the same
    validators, so a bad value in the settings file falls back to the default
    instead of reaching the controller. set_* writes through immediately.
    """
    def __init__(self, org_domain: str = "mapcam.org", app_name: str = "MapCam"):
        self._settings = QSettings(org_domain, app_name)
        self._data = self._load()

    # read
    @property
    def data(self) -> AppSettingsData:
        return self._data

    @property
    def run_mode(self) -> RunMode:
        return self._data.general.run_mode

    @property
    def dev_mode(self) -> bool:
        return self.run_mode is RunMode.DEVELOPMENT

    @property
    def logging_level(self) -> str:
        return self._data.general.logging_level

    @property
    def controller(self) -> ControllerConfig:
        return self._data.controller

    def controller_options(self) -> ControllerOptions:
        """ControllerOptions for a MapCameraController from the current settings."""
        c = self._data.controller
        return ControllerOptions(
            drag_mode=c.drag_mode,
            invert_pan=c.invert_pan,
            scroll_zoom=ScrollZoomOptions(speed=c.scroll_speed, smooth=c.smooth_zoom),
            double_click_zoom=c.double_click_zoom,
            inertia_ms=c.inertia_ms,
            pan_speed=c.pan_speed,
            zoom_speed=c.zoom_speed,
        )

    # write
    def set_run_mode(self, v: str | RunMode) -> None:
        self._set("general", "run_mode", v)

    def set_logging_level(self, v: str) -> None:
        self._set("general", "logging_level", v)

    def set_pan_speed(self, v: float) -> None:
        self._set("controller", "pan_speed", v)

    def set_zoom_speed(self, v: float) -> None:
        self._set("controller", "zoom_speed", v)

    def set_inertia_ms(self, v: float) -> None:
        self._set("controller", "inertia_ms", v)

    def set_scroll_speed(self, v: float) -> None:
        self._set("controller", "scroll_speed", v)

    def set_smooth_zoom(self, v: bool) -> None:
        self._set("controller", "smooth_zoom", v)

    def set_drag_mode(self, v: str) -> None:
        self._set("controller", "drag_mode", v)

    def set_invert_pan(self, v: bool) -> None:
        self._set("controller", "invert_pan", v)

    def set_double_click_zoom(self, v: bool) -> None:
        self._set("controller", "double_click_zoom", v)

    # reset
    def reset_all_to_default(self) -> None:
        for section in SECTIONS:
            self._settings.remove(section)
        self._data = self._load()

    def reset_section(self, section: str) -> None:
        if section not in SECTIONS:
            raise ValueError(f"Invalid section: {section}")
        self._settings.remove(section)
        self._data = self._load()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self._data)
        data["general"]["run_mode"] = self._data.general.run_mode.value
        return data

    # ---------- internals ---------------
    def _set(self, section: str, key: str, v: Any) -> None:
        value, accepted = _validate(section, key, v)
        if not accepted:
            logger.warning("Invalid value for %s/%s: %r, using %r", section, key, v, value)
        stored = value.value if isinstance(value, Enum) else value
        self._settings.setValue(f"{section}/{key}", stored)
        setattr(getattr(self._data, section), key, value)

    def _load_section(self, section: str):
        values = {}
        for f in fields(_MODELS[section]):
            raw = self._settings.value(f"{section}/{f.name}", None)
            if raw is None:
                raw = DEFAULTS[section][f.name]
            value, accepted = _validate(section, f.name, raw)
            if not accepted:
                logger.warning("Stored %s/%s=%r is invalid, using %r", section, f.name, raw, value)
            values[f.name] = value
        return _MODELS[section](**values)

    def _load(self) -> AppSettingsData:
        return AppSettingsData(**{section: self._load_section(section) for section in SECTIONS})
