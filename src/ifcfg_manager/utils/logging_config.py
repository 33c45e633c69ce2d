"""Logging setup and timing helpers.

Library modules only create ``logging.getLogger(__name__)`` loggers. An
application embedding ifcfg-manager calls ``setup_logging`` once; level,
file and rotation come from Settings (``log_*`` keys of the settings file
or the IFCFG_MANAGER_LOG_LEVEL, IFCFG_MANAGER_LOG_FILE,
IFCFG_MANAGER_LOG_MAX_SIZE and IFCFG_MANAGER_LOG_BACKUPS variables).

Backend calls and coordinator workflows are timed on the
``ifcfg_manager.perf`` logger, one line per call:

    ifreload             | eth0            |    41.07ms | OK
    update_routes        | N/A             |     3.10ms | FAIL: Read-only file system | routes=2

Usage:
    setup_logging(Settings.load())

    @timed("reload_connection")
    async def reload_connection(self, name):
        ...

    async with timed_section("refresh"):
        ...
"""
import inspect
import functools
import logging
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

from ..config.settings import Settings

perf_logger = logging.getLogger("ifcfg_manager.perf")
package_logger = logging.getLogger("ifcfg_manager")

PERF_LOG_NAME = "ifcfg-manager-perf.log"

# Handlers added by setup_logging, removed again when it runs a second time
_installed: list[tuple[logging.Logger, logging.Handler]] = []


def level_from_name(name: Optional[str]) -> int:
    """Map a level name to its value; unknown names fall back to INFO."""
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _rotating(path: Path, settings: Settings, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_size_mb * 1024 * 1024,
        backupCount=settings.log_backups,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _install(logger: logging.Logger, *handlers: logging.Handler) -> None:
    for handler in handlers:
        logger.addHandler(handler)
        _installed.append((logger, handler))


def setup_logging(settings: Optional[Settings] = None) -> Path:
    """Send package logs to the console and a rotating file.

    The console shows ``settings.log_level`` and above; the log file keeps
    everything. Timings go to a separate perf file next to the main log
    (and to the console), never into the main log. Calling it again
    replaces the handlers installed by the previous call.

    Returns:
        Path of the main log file
    """
    settings = settings or Settings.from_env()
    log_file = settings.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    perf_log_file = log_file.parent / PERF_LOG_NAME

    for logger, handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level_from_name(settings.log_level))
    console_handler.setFormatter(main_format)

    package_logger.setLevel(logging.DEBUG)
    _install(package_logger, console_handler, _rotating(log_file, settings, main_format))

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    _install(perf_logger, console_handler, _rotating(perf_log_file, settings, perf_format))

    package_logger.info(f"Logging to {log_file} (console level {settings.log_level.upper()})")
    return log_file


def _report(
    operation: str,
    target: Optional[str],
    start: float,
    error: Optional[BaseException] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    elapsed = (time.perf_counter() - start) * 1000
    line = f"{operation:20s} | {target or 'N/A':15s} | {elapsed:8.2f}ms | "
    line += f"FAIL: {error}" if error is not None else "OK"
    if extra:
        line += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())

    if error is None:
        perf_logger.info(line)
    else:
        perf_logger.warning(line)


def _target_from(args: tuple) -> Optional[str]:
    """Interface name from the first argument after self (a name or a model object)."""
    if len(args) < 2:
        return None
    target = args[1]
    if isinstance(target, str):
        return target
    return getattr(target, "name", None)


def timed(operation: str, target: Optional[str] = None):
    """Time every call of a sync or async method.

    Args:
        operation: Name logged for the call (e.g. "ifup", "write_ifcfg")
        target: Interface name; inferred from the first argument after self
            when it is a name or has a ``name`` attribute
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(operation, target or _target_from(args), start, e)
                raise
            _report(operation, target or _target_from(args), start)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(operation, target or _target_from(args), start, e)
                raise
            _report(operation, target or _target_from(args), start)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Time a block of awaits, e.g. a whole coordinator workflow.

    Keyword arguments beyond ``target`` are appended to the line.
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        _report(operation, target, start, e, extra)
        raise
    _report(operation, target, start, extra=extra)
