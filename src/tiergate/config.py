from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from tiergate.runtime import env_policy

DEFAULT_CONFIG_NAME = "tiergate.toml"

DEFAULT_STATE_DIR = ".tiergate"
DEFAULT_SCANNER_TIMEOUT_SECONDS = 300.0
DEFAULT_FIX_TIMEOUT_SECONDS = 60.0
DEFAULT_FIX_COMMAND = "npm run lint -- --fix"
DEFAULT_FIX_CWD = "client"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class TierGateSettings:
    state_dir: str = DEFAULT_STATE_DIR
    scanner_timeout_seconds: float = DEFAULT_SCANNER_TIMEOUT_SECONDS
    policy_path: Path | None = None
    autofix_enabled: bool = True
    fix_timeout_seconds: float = DEFAULT_FIX_TIMEOUT_SECONDS
    fix_command: str = DEFAULT_FIX_COMMAND
    fix_cwd: str = DEFAULT_FIX_CWD
    failed_script_fix_falls_through: bool = False
    keep_baseline_history: bool = False
    commit_autofix: bool = False


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _as_bool(value: TomlValue, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return default


def _as_positive_float(value: TomlValue, *, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if value > 0 else default


def _as_text(value: TomlValue, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def load_settings(root: Path | None = None, config_path: Path | None = None) -> TierGateSettings:
    """Build settings from ``tiergate.toml`` with environment overrides applied last."""
    data = load_config(root=root, config_path=config_path)
    audit = _section(data, "audit")
    autofix = _section(data, "autofix")
    baseline = _section(data, "baseline")
    git = _section(data, "git")

    policy_text = audit.get("policy")
    policy_path = None
    if isinstance(policy_text, str) and policy_text.strip():
        policy_path = Path(policy_text.strip())
        if not policy_path.is_absolute() and root is not None:
            policy_path = root / policy_path

    state_dir = _as_text(audit.get("state_dir"), default=DEFAULT_STATE_DIR)
    scanner_timeout = _as_positive_float(
        audit.get("scanner_timeout_seconds"),
        default=DEFAULT_SCANNER_TIMEOUT_SECONDS,
    )
    fix_timeout = _as_positive_float(
        autofix.get("fix_timeout_seconds"),
        default=DEFAULT_FIX_TIMEOUT_SECONDS,
    )
    autofix_enabled = _as_bool(autofix.get("enabled"), default=True)

    return TierGateSettings(
        state_dir=env_policy.env_text(env_policy.STATE_DIR_ENV) or state_dir,
        scanner_timeout_seconds=env_policy.env_positive_float(
            env_policy.SCANNER_TIMEOUT_ENV,
            default=scanner_timeout,
        ),
        policy_path=policy_path,
        autofix_enabled=autofix_enabled and env_policy.env_enabled_default_true(env_policy.AUTOFIX_ENV),
        fix_timeout_seconds=env_policy.env_positive_float(
            env_policy.FIX_TIMEOUT_ENV,
            default=fix_timeout,
        ),
        fix_command=_as_text(autofix.get("fix_command"), default=DEFAULT_FIX_COMMAND),
        fix_cwd=_as_text(autofix.get("fix_cwd"), default=DEFAULT_FIX_CWD),
        failed_script_fix_falls_through=_as_bool(
            autofix.get("failed_script_fix_falls_through"),
            default=False,
        ),
        keep_baseline_history=_as_bool(baseline.get("keep_history"), default=False),
        commit_autofix=_as_bool(git.get("commit_autofix"), default=False),
    )
