from __future__ import annotations

import logging
import re

import pytest

from conftest import FakeCompleted
from tiergate.config import TierGateSettings
from tiergate.models import AuditResult, AutofixAction, Finding, Severity, Tier, TierAuditResult
from tiergate.tooling.autofix import run_tier_autofix
from tiergate.tooling.autofix_registry import AgentFixRule, ScriptFixRule
from tiergate.tooling.tier_policy import tier_policy_from_mapping


def _audit(tier: Tier, *results: AuditResult) -> TierAuditResult:
    return TierAuditResult(
        tier=tier,
        identifier="x",
        feature_name="checkout",
        results=results,
        timestamp="t",
    )


def _naming(location: str = "client/src/a.ts") -> AuditResult:
    return AuditResult(
        category="naming-convention",
        findings=(
            Finding(
                severity=Severity.INFO,
                message="3 file(s) with naming convention findings",
                location=location,
            ),
        ),
    )


def _hardcoding(location: str = "a.ts") -> AuditResult:
    return AuditResult(
        category="hardcoding",
        findings=(
            Finding(
                severity=Severity.INFO,
                message="2 file(s) with hardcoding patterns (config-driven candidates)",
                location=location,
            ),
        ),
    )


def _never_called(*args, **kwargs):
    raise AssertionError("cascade re-audit should not run")


def test_failed_script_fix_is_recorded_and_not_promoted(workspace, runner) -> None:
    runner.on("npm run lint", FakeCompleted(returncode=1, stderr="lint exploded"))
    result = run_tier_autofix(
        Tier.TASK,
        _audit(Tier.TASK, _naming()),
        max_cascade_depth=0,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert len(result.script_fix_entries) == 1
    entry = result.script_fix_entries[0]
    assert entry.applied is False
    assert entry.command == "npm run lint -- --fix"
    assert result.script_fixes_applied == 0
    assert result.agent_fix_entries == ()
    assert runner.calls[0]["cwd"] == workspace.path / "client"
    assert runner.calls[0]["timeout"] == 60


def test_successful_script_fix_counts(workspace, runner) -> None:
    result = run_tier_autofix(
        Tier.TASK,
        _audit(Tier.TASK, _naming()),
        max_cascade_depth=0,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert result.script_fixes_applied == 1
    assert result.script_fix_entries[0].action is AutofixAction.SCRIPT
    assert result.affected_files == ("client/src/a.ts",)


def test_session_cascades_once_to_task(workspace, runner) -> None:
    calls: list[tuple] = []

    def _audit_fn(tier, identifier, feature_name, changed_files, **kwargs):
        calls.append((tier, identifier, feature_name, changed_files))
        return _audit(tier, _naming("a.ts"))

    result = run_tier_autofix(
        Tier.SESSION,
        _audit(Tier.SESSION, _hardcoding("a.ts")),
        max_cascade_depth=1,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_audit_fn,
    )
    assert calls == [(Tier.TASK, "cascade-reaudit", "checkout", ["a.ts"])]
    assert len(result.agent_fix_entries) == 1
    assert result.agent_fix_entries[0].action is AutofixAction.AGENT
    assert result.agent_fix_entries[0].agent_directive == (
        "Move hardcoded patterns in a.ts to config or constants."
    )
    assert len(result.cascade_results) == 1
    child = result.cascade_results[0]
    assert child.tier is Tier.TASK
    assert child.cascade_depth == 1
    assert child.cascade_results == ()
    assert result.summary.endswith("Cascade: 1 lower-tier re-audit(s) run.")


def test_cascade_skips_tier_missing_from_policy(workspace, runner, caplog) -> None:
    session_only = tier_policy_from_mapping(
        {
            "tiers": {
                "session": {
                    "scanner_command": "npm run audit:tier-session",
                    "report_dir": "client/.audit-reports",
                    "max_cascade_depth": 1,
                    "audits": [{"category": "hardcoding", "artifact": "hardcoding-audit.json"}],
                }
            }
        }
    )
    with caplog.at_level(logging.WARNING, logger="tiergate.tooling.autofix"):
        result = run_tier_autofix(
            Tier.SESSION,
            _audit(Tier.SESSION, _hardcoding("a.ts")),
            max_cascade_depth=1,
            feature_name="checkout",
            workspace=workspace,
            policy=session_only,
            run_fn=runner,
            audit_fn=_never_called,
        )
    assert result.affected_files == ("a.ts",)
    assert result.cascade_results == ()
    assert result.summary.endswith("Cascade: 0 lower-tier re-audit(s) run.")
    assert "defines no task tier" in caplog.text


def test_task_tier_never_cascades(workspace, runner) -> None:
    result = run_tier_autofix(
        Tier.TASK,
        _audit(Tier.TASK, _naming(), _hardcoding()),
        max_cascade_depth=5,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert result.affected_files
    assert result.cascade_results == ()


def test_depth_limit_and_no_affected_files_stop_cascade(workspace, runner) -> None:
    at_limit = run_tier_autofix(
        Tier.PHASE,
        _audit(Tier.PHASE, _hardcoding()),
        max_cascade_depth=1,
        cascade_depth=1,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert at_limit.cascade_results == ()

    unmatched = AuditResult(
        category="meta",
        findings=(Finding(severity=Severity.INFO, message="meta audit produced output", location="m.json"),),
    )
    nothing = run_tier_autofix(
        Tier.FEATURE,
        _audit(Tier.FEATURE, unmatched),
        max_cascade_depth=3,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert nothing.affected_files == ()
    assert nothing.cascade_results == ()


def test_nested_cascade_lists_direct_then_nested(workspace, runner) -> None:
    def _audit_fn(tier, identifier, feature_name, changed_files, **kwargs):
        return _audit(tier, _hardcoding("a.ts"))

    result = run_tier_autofix(
        Tier.FEATURE,
        _audit(Tier.FEATURE, _hardcoding("a.ts")),
        max_cascade_depth=2,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_audit_fn,
    )
    assert [child.tier for child in result.cascade_results] == [Tier.PHASE, Tier.SESSION]
    assert [child.cascade_depth for child in result.cascade_results] == [1, 2]
    phase = result.cascade_results[0]
    assert [child.tier for child in phase.cascade_results] == [Tier.SESSION]
    assert phase.cascade_results[0].cascade_results == ()


def _overlapping_rules() -> tuple[tuple[ScriptFixRule, ...], tuple[AgentFixRule, ...]]:
    pattern = re.compile("widget", re.IGNORECASE)
    script = (ScriptFixRule(audit_name="widgets", category_match=("widgets",), finding_pattern=pattern, command="fix-widgets"),)
    agent = (
        AgentFixRule(
            audit_name="widgets",
            category_match=("widgets",),
            finding_pattern=pattern,
            directive=lambda finding: f"Tidy {finding.location}",
        ),
    )
    return script, agent


@pytest.mark.parametrize(
    ("returncode", "falls_through", "agent_count"),
    [(0, False, 0), (1, False, 0), (0, True, 0), (1, True, 1)],
)
def test_script_claim_and_fall_through(workspace, runner, returncode, falls_through, agent_count) -> None:
    runner.on("fix-widgets", FakeCompleted(returncode=returncode))
    script, agent = _overlapping_rules()
    audit = AuditResult(
        category="widgets",
        findings=(Finding(severity=Severity.WARNING, message="widget drift", location="w.ts"),),
    )
    result = run_tier_autofix(
        Tier.TASK,
        audit,
        max_cascade_depth=0,
        feature_name="checkout",
        workspace=workspace,
        settings=TierGateSettings(failed_script_fix_falls_through=falls_through),
        run_fn=runner,
        audit_fn=_never_called,
        script_rules=script,
        agent_rules=agent,
    )
    assert runner.commands() == ["fix-widgets"]
    assert len(result.script_fix_entries) == 1
    assert len(result.agent_fix_entries) == agent_count
    assert result.affected_files == ("w.ts",)


def test_summary_reports_zero_counts(workspace, runner) -> None:
    result = run_tier_autofix(
        "task",
        _audit(Tier.TASK),
        max_cascade_depth=0,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert result.summary == (
        "Tier task: 0 script fix(es) applied, 0 agent directive(s). "
        "Affected files: 0. Cascade: 0 lower-tier re-audit(s) run."
    )
    assert runner.calls == []


def test_affected_files_are_deduplicated_in_first_seen_order(workspace, runner) -> None:
    result = run_tier_autofix(
        Tier.TASK,
        _audit(Tier.TASK, _hardcoding("b.ts"), _naming("a.ts"), _hardcoding("a.ts")),
        max_cascade_depth=0,
        feature_name="checkout",
        workspace=workspace,
        run_fn=runner,
        audit_fn=_never_called,
    )
    assert result.affected_files == ("a.ts", "b.ts")
