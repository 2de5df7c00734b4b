from __future__ import annotations

import logging
import os

_LOG = logging.getLogger(__name__)

_FALSEY_VALUES = {"0", "false", "no", "off"}

SCANNER_TIMEOUT_ENV = "TIERGATE_SCANNER_TIMEOUT_SECONDS"
FIX_TIMEOUT_ENV = "TIERGATE_FIX_TIMEOUT_SECONDS"
AUTOFIX_ENV = "TIERGATE_AUTOFIX"
STATE_DIR_ENV = "TIERGATE_STATE_DIR"


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def env_enabled_default_true(name: str, *, value: str | None = None) -> bool:
    text = value if isinstance(value, str) else os.getenv(name)
    if text is None:
        return True
    return text.strip().lower() not in _FALSEY_VALUES


def env_positive_float(name: str, *, default: float) -> float:
    text = env_text(name)
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        _LOG.warning("ignoring %s=%r: expected a number", name, text)
        return default
    if value <= 0:
        _LOG.warning("ignoring %s=%r: expected a positive number", name, text)
        return default
    return value
