from __future__ import annotations

import logging
import subprocess
from typing import Callable, Iterable, Sequence

from tiergate.config import TierGateSettings
from tiergate.models import (
    AuditResult,
    AutofixEntry,
    AutofixResult,
    Finding,
    Tier,
    TierAuditResult,
    child_tier,
    parse_tier,
)
from tiergate.runtime.process import RunCommand, run_bounded
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.autofix_registry import (
    AGENT_FIX_RULES,
    SCRIPT_FIX_RULES,
    AgentFixRule,
    ScriptFixRule,
    match_agent_rule,
    match_script_rule,
)
from tiergate.tooling.dispatcher import run_tier_audit
from tiergate.tooling.tier_policy import TierPolicy, load_tier_policy

_LOG = logging.getLogger(__name__)

CASCADE_IDENTIFIER = "cascade-reaudit"

AuditFn = Callable[..., TierAuditResult]
CategorizedFinding = tuple[str, Finding]


def categorized_findings(audit: TierAuditResult | AuditResult) -> list[CategorizedFinding]:
    if isinstance(audit, AuditResult):
        return [(audit.category, finding) for finding in audit.findings]
    return [
        (result.category, finding)
        for result in audit.results
        for finding in result.findings
    ]


def _dedupe(paths: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for path in paths:
        if path:
            seen.setdefault(path, None)
    return tuple(seen)


def apply_script_fixes(
    findings: Sequence[CategorizedFinding],
    *,
    workspace: WorkspaceRoot,
    settings: TierGateSettings,
    rules: Sequence[ScriptFixRule] = SCRIPT_FIX_RULES,
    run_fn: RunCommand = subprocess.run,
) -> tuple[list[AutofixEntry], list[CategorizedFinding]]:
    """Run the first matching script fix per finding; return entries and unclaimed findings."""
    entries: list[AutofixEntry] = []
    remaining: list[CategorizedFinding] = []
    fix_cwd = workspace.resolve(settings.fix_cwd)
    for category, finding in findings:
        rule = match_script_rule(category, finding, rules)
        if rule is None:
            remaining.append((category, finding))
            continue
        command = rule.command or settings.fix_command
        outcome = run_bounded(
            command,
            cwd=fix_cwd,
            timeout_seconds=settings.fix_timeout_seconds,
            run_fn=run_fn,
        )
        if not outcome.ok:
            _LOG.warning("%s fix failed (%s): %s", rule.audit_name, outcome.describe(), command)
        entries.append(
            AutofixEntry(
                action=rule.action,
                audit_name=rule.audit_name,
                category=category,
                finding=finding,
                command=command,
                affected_files=rule.affected_files(finding),
                applied=outcome.ok,
            )
        )
        if not outcome.ok and settings.failed_script_fix_falls_through:
            remaining.append((category, finding))
    return entries, remaining


def build_agent_fix_plan(
    findings: Sequence[CategorizedFinding],
    rules: Sequence[AgentFixRule] = AGENT_FIX_RULES,
) -> list[AutofixEntry]:
    entries: list[AutofixEntry] = []
    for category, finding in findings:
        rule = match_agent_rule(category, finding, rules)
        if rule is None:
            continue
        entries.append(
            AutofixEntry(
                action=rule.action,
                audit_name=rule.audit_name,
                category=category,
                finding=finding,
                agent_directive=rule.directive(finding),
                affected_files=(finding.location,) if finding.location else (),
                applied=False,
            )
        )
    return entries


def autofix_summary(
    tier: Tier,
    *,
    script_fixes_applied: int,
    agent_directives: int,
    affected_files: int,
    cascade_runs: int,
) -> str:
    return (
        f"Tier {tier.value}: {script_fixes_applied} script fix(es) applied, "
        f"{agent_directives} agent directive(s). "
        f"Affected files: {affected_files}. "
        f"Cascade: {cascade_runs} lower-tier re-audit(s) run."
    )


def run_tier_autofix(
    tier: Tier | str,
    audit: TierAuditResult | AuditResult,
    *,
    max_cascade_depth: int,
    cascade_depth: int = 0,
    changed_files: Sequence[str] | None = None,
    feature_name: str,
    workspace: WorkspaceRoot,
    settings: TierGateSettings | None = None,
    policy: TierPolicy | None = None,
    run_fn: RunCommand = subprocess.run,
    audit_fn: AuditFn = run_tier_audit,
    script_rules: Sequence[ScriptFixRule] = SCRIPT_FIX_RULES,
    agent_rules: Sequence[AgentFixRule] = AGENT_FIX_RULES,
) -> AutofixResult:
    """Apply script fixes, plan agent fixes, then re-audit affected files one tier down.

    Recursion ends at Task, at ``max_cascade_depth``, or when nothing was
    touched. Each level's ``cascade_results`` holds its direct child followed
    by that child's own cascade results. A child tier missing from the
    policy ends the cascade with a warning.

    ``changed_files`` is informational: rule matching always walks every
    finding in ``audit``, and the cascade scopes the child re-audit to the
    files touched here.
    """
    resolved_tier = parse_tier(tier)
    resolved_settings = settings if settings is not None else TierGateSettings()
    findings = categorized_findings(audit)
    if changed_files:
        _LOG.debug("autofix at %s scoped to %d changed file(s)", resolved_tier.value, len(changed_files))

    script_entries, remaining = apply_script_fixes(
        findings,
        workspace=workspace,
        settings=resolved_settings,
        rules=script_rules,
        run_fn=run_fn,
    )
    agent_entries = build_agent_fix_plan(remaining, agent_rules)
    affected = _dedupe(
        path
        for entry in (*script_entries, *agent_entries)
        for path in entry.affected_files
    )

    cascade_results: tuple[AutofixResult, ...] = ()
    child = child_tier(resolved_tier)
    if child is not None and cascade_depth < max_cascade_depth and affected:
        resolved_policy = policy if policy is not None else load_tier_policy(resolved_settings.policy_path)
        if child not in resolved_policy.tiers:
            _LOG.warning("tier policy defines no %s tier; skipping cascade from %s", child.value, resolved_tier.value)
            child = None
    else:
        child = None
    if child is not None:
        _LOG.info(
            "cascading %s re-audit over %d file(s) at depth %d",
            child.value,
            len(affected),
            cascade_depth + 1,
        )
        child_audit = audit_fn(
            child,
            CASCADE_IDENTIFIER,
            feature_name,
            list(affected),
            workspace=workspace,
            policy=resolved_policy,
            settings=resolved_settings,
            run_fn=run_fn,
        )
        child_result = run_tier_autofix(
            child,
            child_audit,
            max_cascade_depth=max_cascade_depth,
            cascade_depth=cascade_depth + 1,
            changed_files=list(affected),
            feature_name=feature_name,
            workspace=workspace,
            settings=resolved_settings,
            policy=resolved_policy,
            run_fn=run_fn,
            audit_fn=audit_fn,
            script_rules=script_rules,
            agent_rules=agent_rules,
        )
        cascade_results = (child_result, *child_result.cascade_results)

    script_fixes_applied = sum(1 for entry in script_entries if entry.applied)
    return AutofixResult(
        tier=resolved_tier,
        cascade_depth=cascade_depth,
        script_fix_entries=tuple(script_entries),
        agent_fix_entries=tuple(agent_entries),
        affected_files=affected,
        cascade_results=cascade_results,
        summary=autofix_summary(
            resolved_tier,
            script_fixes_applied=script_fixes_applied,
            agent_directives=len(agent_entries),
            affected_files=len(affected),
            cascade_runs=len(cascade_results),
        ),
    )
