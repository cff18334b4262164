"""
Logging helpers.

The engines only emit through module loggers; the CLI calls setup_logging()
once so records land in a per-user log file, with warnings mirrored to stderr.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

ENV_LOG_LEVEL = "MESHENGINE_LOG_LEVEL"

_LOG_ONCE_KEYS: set[str] = set()
_LOG_ONCE_LOCK = threading.Lock()

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s %(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_CONSOLE_HANDLER_NAME = "meshengine-console"


def default_log_dir() -> Path:
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or str(Path.home())
        return Path(base) / "MeshEngine" / "logs"

    xdg_state_home = os.environ.get("XDG_STATE_HOME")
    if xdg_state_home:
        return Path(xdg_state_home) / "meshengine" / "logs"

    return Path.home() / ".local" / "state" / "meshengine" / "logs"


def parse_log_level(level: str | int) -> int:
    if isinstance(level, int):
        return int(level)
    value = str(level).strip().upper()
    if not value:
        return logging.INFO
    resolved = getattr(logging, value, None)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def setup_logging(
    *,
    log_level: str | int = "INFO",
    log_dir: Optional[str | Path] = None,
    filename: str = "meshengine.log",
    console_level: Optional[int] = logging.WARNING,
) -> Optional[Path]:
    """
    Configure root logging to a UTF-8 file (plus stderr for warnings).

    Idempotent: if a FileHandler is already attached, its path is returned
    and nothing is added. Returns None when the log directory is unusable;
    the stderr mirror is still attached only once across such retries.
    """
    root = logging.getLogger()

    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    level = parse_log_level(os.environ.get(ENV_LOG_LEVEL) or log_level)
    root.setLevel(level)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    has_console = any(h.get_name() == _CONSOLE_HANDLER_NAME for h in root.handlers)
    if console_level is not None and not has_console:
        console = logging.StreamHandler(sys.stderr)
        console.set_name(_CONSOLE_HANDLER_NAME)
        console.setLevel(console_level)
        console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root.addHandler(console)

    resolved_dir = Path(log_dir) if log_dir is not None else default_log_dir()
    log_path = resolved_dir / filename
    try:
        resolved_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
    except OSError as e:
        root.warning("File logging disabled (%s): %s", log_path, e)
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    root.info("Logging initialized: %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


def format_exception_message(prefix: str, message: str, *, log_path: Optional[Path]) -> str:
    if log_path is None:
        return f"{prefix}: {message}"
    return f"{prefix}: {message}\n(see log file: {log_path})"


def log_once(
    logger: logging.Logger,
    key: str,
    level: int,
    msg: str,
    *args,
    exc_info: bool | BaseException | None = None,
) -> bool:
    """
    Logs at most once per process for the given key.

    Keeps per-batch warnings from flooding the log when many meshes or
    workers hit the same condition.
    """
    k = str(key)
    with _LOG_ONCE_LOCK:
        if k in _LOG_ONCE_KEYS:
            return False
        _LOG_ONCE_KEYS.add(k)

    logger.log(level, msg, *args, exc_info=exc_info)
    return True


def reset_log_once() -> None:
    with _LOG_ONCE_LOCK:
        _LOG_ONCE_KEYS.clear()
