import functools
import inspect
import logging
import time
from typing import Any, Callable, Iterable


logger = logging.getLogger('mapcam')

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")
_SKIPPED_ARGS = ("self", "cls")


def short_repr(value: Any, limit: int = 120) -> str:
    """repr() clipped to ``limit`` characters; never raises."""
    try:
        text = repr(value)
    except Exception:
        return '<unrepresentable>'
    return text if len(text) <= limit else text[:limit] + '...'


def _format_call(sig: inspect.Signature | None, args, kwargs, mask: Iterable[str]) -> str:
    if sig is None:
        items = [(f"arg{i}", a) for i, a in enumerate(args)] + list(kwargs.items())
    else:
        try:
            items = list(sig.bind_partial(*args, **kwargs).arguments.items())
        except TypeError:
            items = [(f"arg{i}", a) for i, a in enumerate(args)] + list(kwargs.items())
    return ", ".join(
        f"{name}={'***' if name in mask else short_repr(value)}"
        for name, value in items
        if name not in _SKIPPED_ARGS
    )


def log_io(level: int = logging.DEBUG, mask: tuple[str, ...] = ()):
    """
    Trace calls of the decorated function on the ``mapcam`` logger.

    One line on entry with the bound arguments, one on return with the result
    and the elapsed milliseconds. Exceptions are logged and re-raised.
    Arguments named in ``mask`` are written as ``***``.
    """
    def deco(func: Callable):
        qualname = f"{func.__module__}.{func.__qualname__}"
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError):
            sig = None

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            tracing = logger.isEnabledFor(level)
            if tracing:
                logger.log(level, "-> %s(%s)", qualname, _format_call(sig, args, kwargs, mask))

            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.exception("Exception in %s", qualname)
                raise

            if tracing:
                elapsed_ms = (time.perf_counter() - started) * 1000.0
                logger.log(level, "<- %s [%0.1f ms] = %s", qualname, elapsed_ms, short_repr(result))
            return result
        return wrapper
    return deco


def level_from_name(value: Any, default: int = logging.INFO) -> int:
    """Level name ("debug", " WARNING ") or number ("30", 30) to a logging level."""
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return default

    text = value.strip()
    if text.isdigit():
        return int(text)
    name = text.upper()
    return getattr(logging, name) if name in LEVEL_NAMES else default
