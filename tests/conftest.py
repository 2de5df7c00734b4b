from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


import pytest

from tiergate.config import TierGateSettings
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.tier_policy import tier_policy_from_mapping
from tests.env_helpers import restore_env as _restore_env
from tests.env_helpers import set_env as _set_env


class FakeCompleted:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class RecordingRunner:
    """Stands in for ``subprocess.run``; returns queued results per command prefix."""

    def __init__(self, default_returncode: int = 0) -> None:
        self.calls: list[dict[str, object]] = []
        self.default_returncode = default_returncode
        self.results: dict[str, FakeCompleted | BaseException] = {}

    def on(self, prefix: str, result: FakeCompleted | BaseException) -> None:
        self.results[prefix] = result

    def __call__(self, command, **kwargs):
        text = command if isinstance(command, str) else " ".join(command)
        self.calls.append({"command": text, **kwargs})
        for prefix, result in self.results.items():
            if text.startswith(prefix):
                if isinstance(result, BaseException):
                    raise result
                return result
        return FakeCompleted(returncode=self.default_returncode)

    def commands(self) -> list[str]:
        return [str(call["command"]) for call in self.calls]


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceRoot:
    (tmp_path / "client" / ".audit-reports").mkdir(parents=True)
    return WorkspaceRoot.from_path(tmp_path)


@pytest.fixture
def settings() -> TierGateSettings:
    return TierGateSettings()


@pytest.fixture
def small_policy():
    return tier_policy_from_mapping(
        {
            "default_penalties": {"error": 20, "warning": 10, "info": 2},
            "tiers": {
                "session": {
                    "scanner_command": "npm run audit:tier-session",
                    "scanner_cwd": "client",
                    "report_dir": "client/.audit-reports",
                    "changed_only": True,
                    "changed_only_args": ["--", "--changed-only"],
                    "max_cascade_depth": 1,
                    "audits": [
                        {"category": "component-logic", "artifact": "component-logic-audit.json"},
                        {"category": "hardcoding", "artifact": "hardcoding-audit.json"},
                    ],
                    "score_sources": [
                        {
                            "category": "component-governance",
                            "artifact": "component-governance-audit.json",
                            "key_path": ["summary", "score"],
                        }
                    ],
                },
                "task": {
                    "scanner_command": "npm run audit:tier-task",
                    "scanner_cwd": "client",
                    "report_dir": "client/.audit-reports",
                    "changed_only": True,
                    "changed_only_args": ["--", "--changed-only"],
                    "max_cascade_depth": 0,
                    "audits": [
                        {"category": "naming-convention", "artifact": "naming-convention-audit.json"},
                        {"category": "security", "artifact": "security-audit.json"},
                    ],
                },
            },
        }
    )


@pytest.fixture
def write_artifact(workspace: WorkspaceRoot):
    def _write(name: str, payload: object) -> Path:
        path = workspace.resolve("client/.audit-reports") / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def env_scope():
    return _set_env


@pytest.fixture
def restore_env():
    return _restore_env
