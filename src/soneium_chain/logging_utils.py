"""
Logging helpers for Soneium client operations.

Features:
- Package-level logger hierarchy rooted at ``soneium_chain``
- Per-client logger selection (explicit logger, level, or disabled)
- JSON-safe formatting of structured log payloads
- Masking of API keys in URLs and headers
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

ROOT_LOGGER_NAME = "soneium_chain"

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    NONE = "NONE"

    def to_logging_level(self) -> int:
        if self is LogLevel.NONE:
            return logging.CRITICAL + 10
        return getattr(logging, self.value)


class _DisabledFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        return False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger inside the package hierarchy."""
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(target: logging.Logger, level: Union[LogLevel, str, int]) -> None:
    """Set the minimum level emitted by ``target``."""
    if isinstance(level, int):
        target.setLevel(level)
        return
    if not isinstance(level, LogLevel):
        level = LogLevel(str(level).upper())
    target.setLevel(level.to_logging_level())


def resolve_logger(
    logger_: Optional[logging.Logger] = None,
    level: Optional[Union[LogLevel, str, int]] = None,
    enabled: Optional[bool] = None,
    name: str = "client",
) -> logging.Logger:
    """
    Choose the logger a client should use.

    Precedence: an explicit logger, then an explicit level (a dedicated child
    logger at that level), then ``enabled=False`` (a silenced child logger),
    then the package logger.
    """
    if logger_ is not None:
        return logger_
    if level is not None:
        child = get_logger(name)
        set_log_level(child, level)
        return child
    if enabled is False:
        silent = get_logger(f"{name}.silent")
        silent.propagate = False
        if not any(isinstance(f, _DisabledFilter) for f in silent.filters):
            silent.addFilter(_DisabledFilter())
        return silent
    return get_logger(name)


def configure_logging(level: Union[LogLevel, str] = LogLevel.INFO) -> logging.Logger:
    """Attach a stream handler to the package logger (for scripts and the CLI)."""
    root = get_logger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        root.addHandler(handler)
    set_log_level(root, level)
    return root


def _convert(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, int) and not isinstance(obj, bool) and obj > 2**53:
        # Keep large wei amounts exact
        return str(obj)
    if isinstance(obj, dict):
        return {k: _convert(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert(v) for v in obj]
    return obj


def format_log_data(data: Dict[str, Any]) -> str:
    """Format a structured payload for a log line."""
    return json.dumps(_convert(data), default=str)


def mask_url(url: str) -> str:
    """Mask query parameters (often API keys) in a URL."""
    if "?" in url:
        base = url.split("?")[0]
        return f"{base}?<params_masked>"
    return url


def mask_secret(secret: Optional[str]) -> str:
    if not secret:
        return "<unset>"
    if len(secret) <= 12:
        return "***"
    return f"{secret[:4]}...{secret[-4:]}"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    masked = dict(headers)
    for key in list(masked):
        if key.lower() == "authorization":
            masked[key] = "Bearer ***"
    return masked
