import logging
from logging.handlers import RotatingFileHandler
import os
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_CONFIGURED = False
_FULL_ENABLED = False

# Third-party loggers that flood DEBUG output (socket-mode pings, HTTP wire logs)
NOISY_LIBRARIES = (
    "slack_bolt",
    "slack_sdk",
    "slack_sdk.socket_mode",
    "slack_sdk.web",
    "httpx",
    "httpcore",
    "aiohttp",
    "uvicorn.access",
)

_PATTERN = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S%z"


def _host_tz():
    return datetime.now().astimezone().tzinfo


def _log_tz(tz: Optional[str]):
    """`UTC`, `system`/None (host zone) or an IANA name; unknown names use the host zone."""
    if tz == "UTC":
        return timezone.utc
    if tz is None or tz == "system":
        return _host_tz()
    try:
        return ZoneInfo(tz)
    except ZoneInfoNotFoundError:
        return _host_tz()


class _TzFormatter(logging.Formatter):
    """Stamps records in the configured zone instead of the host's."""

    def __init__(self, tz: Optional[str] = None):
        super().__init__(_PATTERN, datefmt=_DATEFMT)
        self._tz = _log_tz(tz)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, tz=self._tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return str(raw).lower() in ("1", "true", "yes", "on")


def _rotating(path: str, level: int, tz: Optional[str]) -> RotatingFileHandler:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    handler = RotatingFileHandler(
        filename=path,
        mode="a",
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
        delay=False,
    )
    handler.setLevel(level)
    handler.setFormatter(_TzFormatter(tz))
    return handler


def configure_logging(level: Optional[str] = None, tz: Optional[str] = None, lib_log_level: Optional[str] = None, console_to_file: bool | None = None, error_file: bool | None = None) -> None:
    global _CONFIGURED, _FULL_ENABLED
    if _CONFIGURED:
        return
    lvl = (level or "INFO").upper()
    if lvl not in ("INFO", "DEBUG", "FULL"):
        lvl = "INFO"
    py_level = logging.DEBUG if lvl in ("DEBUG", "FULL") else logging.INFO
    # FULL additionally logs complete prompts sent to the backends
    _FULL_ENABLED = (lvl == "FULL")

    root = logging.getLogger()
    root.setLevel(py_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setLevel(py_level)
    handler.setFormatter(_TzFormatter(tz))
    root.addHandler(handler)

    # LOG_CONSOLE / LOG_ERRORS env vars win over config values
    mirror_enabled = _env_flag("LOG_CONSOLE")
    if mirror_enabled is None:
        mirror_enabled = bool(console_to_file)
    if mirror_enabled:
        try:
            root.addHandler(_rotating("logs/log.log", py_level, tz))
        except OSError as e:
            root.warning(f"log-file-disabled path=logs/log.log error={e}")

    errors_enabled = _env_flag("LOG_ERRORS")
    if errors_enabled is None:
        errors_enabled = bool(error_file)
    if errors_enabled:
        try:
            root.addHandler(_rotating("logs/errors.log", logging.ERROR, tz))
        except OSError as e:
            root.warning(f"log-file-disabled path=logs/errors.log error={e}")

    lib_level_name = lib_log_level or os.getenv("LIB_LOG_LEVEL")
    if lib_level_name:
        lib_level = getattr(logging, lib_level_name.upper(), logging.WARNING)
    else:
        lib_level = logging.WARNING
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(lib_level)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    # Unconfigured callers (tests, scripts) get INFO console logging in host time
    if not _CONFIGURED:
        configure_logging(level="INFO", tz="system")
    return logging.getLogger(name)


def is_full_enabled() -> bool:
    return _FULL_ENABLED


