"""Coloured console logging with a global level and URL masking."""

from __future__ import annotations

import inspect
import os
from datetime import datetime
from enum import IntEnum


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    PANIC = 5


INFO_COLOR = "\033[34m"
WARN_COLOR = "\033[33m"
ERROR_COLOR = "\033[31m"
DEBUG_COLOR = "\033[32m"
RESET_COLOR = "\033[0m"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"

_STYLES = {
    LogLevel.DEBUG: ("DEBUG", DEBUG_COLOR),
    LogLevel.INFO: ("INFO", INFO_COLOR),
    LogLevel.WARN: ("WARN", WARN_COLOR),
    LogLevel.ERROR: ("ERROR", ERROR_COLOR),
    LogLevel.FATAL: ("FATAL", ERROR_COLOR),
    LogLevel.PANIC: ("PANIC", ERROR_COLOR),
}

_LEVEL_NAMES = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warn": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "fatal": LogLevel.FATAL,
    "panic": LogLevel.PANIC,
}

_level = LogLevel.DEBUG

try:
    _base_dir = os.getcwd()
except OSError:
    _base_dir = "."


def set_log_level(level: str) -> None:
    """Set the minimum level by name; unknown names are ignored."""
    global _level
    found = _LEVEL_NAMES.get(level)
    if found is not None:
        _level = found


def _caller_location() -> str:
    frame = inspect.currentframe()
    # _caller_location <- _log <- public function <- caller
    for _ in range(3):
        if frame is None:
            return ""
        frame = frame.f_back
    if frame is None:
        return ""
    filename = frame.f_code.co_filename
    try:
        rel = os.path.relpath(filename, _base_dir)
    except ValueError:
        rel = filename
    return f"{rel.replace(os.sep, '/')}:{frame.f_lineno} "


def _log(level: LogLevel, message: str, args: tuple) -> None:
    if level < _level:
        return
    name, color = _STYLES[level]
    location = _caller_location() if level in (LogLevel.DEBUG, LogLevel.ERROR) else ""
    text = message % args if args else message
    stamp = datetime.now().strftime(TIME_FORMAT)
    print(f"{color}{name:<5}{RESET_COLOR} [{stamp}] {location}{text}", flush=True)


def debug(message: str, *args) -> None:
    _log(LogLevel.DEBUG, message, args)


def info(message: str, *args) -> None:
    _log(LogLevel.INFO, message, args)


def warn(message: str, *args) -> None:
    _log(LogLevel.WARN, message, args)


def error(message: str, *args) -> None:
    _log(LogLevel.ERROR, message, args)


def fatal(message: str, *args) -> None:
    _log(LogLevel.FATAL, message, args)


def panic(message: str, *args) -> None:
    _log(LogLevel.PANIC, message, args)


def _mask_domain(domain: str) -> str:
    last_dot = domain.rfind(".")
    if last_dot == -1:
        return domain
    sub, top = domain[:last_dot], domain[last_dot:]
    if len(sub) > 2:
        masked = sub[0] + "*" * (len(sub) - 1)
        masked = masked[:-1] + sub[-1]
        if len(masked) > 4:
            masked = masked[:2] + "**" + masked[-1:]
        sub = masked
    return sub + top


def _mask_path(path: str) -> str:
    if not path:
        return ""
    parts = path.split("/")
    if len(parts) <= 1:
        return path
    if len(parts) > 2:
        parts = parts[-2:]
    return "/".join(f"{p[:2]}...{p[-2:]}" if len(p) > 8 else p for p in parts)


def mask_url(url: str) -> str:
    """Hide most of the host and path of a URL for log output."""
    slashes = url.find("//")
    if slashes == -1:
        return url
    rest = url[slashes + 2 :]
    path_start = rest.find("/")
    if path_start == -1:
        domain, path = rest, ""
    else:
        domain, path = rest[:path_start], rest[path_start:]
    return url[: slashes + 2] + _mask_domain(domain) + "/" + _mask_path(path)