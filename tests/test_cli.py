from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from tiergate import cli

_POLICY = """\
tiers:
  task:
    scanner_command: scan-task
    scanner_cwd: scanner-not-installed
    report_dir: reports
    changed_only: true
    changed_only_args: ["--changed-only"]
    max_cascade_depth: 0
    audits:
      - {category: security, artifact: security-audit.json}
      - {category: typecheck, artifact: typecheck-audit.json}
"""


def _workspace(tmp_path: Path, *, autofix: bool = False) -> Path:
    (tmp_path / "policy.yaml").write_text(_POLICY, encoding="utf-8")
    (tmp_path / "tiergate.toml").write_text(
        "\n".join(
            [
                "[audit]",
                'policy = "policy.yaml"',
                "[autofix]",
                f"enabled = {'true' if autofix else 'false'}",
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "reports").mkdir()
    return tmp_path


def test_invalid_tier_is_usage_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.app, ["audit", "epic", "1", "checkout", "--root", str(tmp_path)])
    assert result.exit_code == 2


def test_audit_passes_when_artifacts_missing(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    result = CliRunner().invoke(cli.app, ["audit", "task", "1.1", "checkout", "--root", str(root)])
    assert result.exit_code == 0, result.output
    assert "Task 1.1: PASS" in result.output
    assert "Ran 2 audits; found 0 error(s), 0 warning(s), 2 info signal(s)." in result.output


def test_audit_fails_with_exit_one(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    (root / "reports" / "security-audit.json").write_text(
        json.dumps({"summary": {"totalErrors": 2}}),
        encoding="utf-8",
    )
    result = CliRunner().invoke(cli.app, ["audit", "task", "1.1", "checkout", "--root", str(root), "--json"])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["overall_status"] == "fail"
    assert payload["results"][0]["score"] == 80


def test_start_and_end_write_reports(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    runner = CliRunner()
    start = runner.invoke(cli.app, ["start", "task", "1.1", "checkout", "--root", str(root)])
    assert start.exit_code == 0, start.output
    audits = root / ".tiergate" / "features" / "checkout" / "audits"
    assert (audits / "baselines" / "task-1.1-baseline.json").exists()
    assert (audits / "task-1.1-start-audit.md").exists()
    assert (audits / "task-1.1-start-audit.json").exists()

    end = runner.invoke(cli.app, ["end", "task", "1.1", "checkout", "--root", str(root), "--no-commit"])
    assert end.exit_code == 0, end.output
    assert "security: unchanged (+0)" in end.output
    assert (audits / "task-1.1-audit.md").exists()
    payload = json.loads((audits / "task-1.1-audit.json").read_text(encoding="utf-8"))
    assert payload["audit_type"] == "end"
    assert payload["autofix"] is None


def test_invalid_policy_is_usage_error(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    (root / "policy.yaml").write_text("tiers: []\n", encoding="utf-8")
    result = CliRunner().invoke(cli.app, ["audit", "task", "1", "checkout", "--root", str(root)])
    assert result.exit_code == 2


def test_tier_missing_from_policy_is_usage_error(tmp_path: Path) -> None:
    root = _workspace(tmp_path)
    result = CliRunner().invoke(cli.app, ["end", "session", "2.1", "checkout", "--root", str(root)])
    assert result.exit_code == 2
    assert "defines no session tier" in result.output
