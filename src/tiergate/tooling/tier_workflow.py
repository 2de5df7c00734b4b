from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from tiergate.config import TierGateSettings
from tiergate.models import AutofixResult, Comparison, Tier, TierAuditResult, parse_tier
from tiergate.runtime.process import RunCommand
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.autofix import AuditFn, run_tier_autofix
from tiergate.tooling.baseline_store import BaselineStore, compare_scores
from tiergate.tooling.commit_autofix import CommitOutcome, commit_autofix_changes
from tiergate.tooling.dispatcher import run_tier_audit
from tiergate.tooling.report_writer import AuditType, write_report
from tiergate.tooling.tier_policy import TierPolicy, load_tier_policy

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartAuditOutcome:
    audit: TierAuditResult
    baseline_path: Path | None

    def to_payload(self) -> dict[str, object]:
        return {
            "audit": self.audit.to_payload(),
            "baseline_path": str(self.baseline_path) if self.baseline_path else None,
        }


@dataclass(frozen=True)
class EndAuditOutcome:
    audit: TierAuditResult
    comparisons: tuple[Comparison, ...]
    autofix: AutofixResult | None = None
    commit: CommitOutcome | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "audit": self.audit.to_payload(),
            "baseline_comparison": [comparison.to_payload() for comparison in self.comparisons],
            "autofix": self.autofix.to_payload() if self.autofix is not None else None,
            "commit": self.commit.to_payload() if self.commit is not None else None,
        }


def run_start_audit(
    tier: Tier | str,
    identifier: str,
    feature_name: str,
    changed_files: Sequence[str] | None = None,
    *,
    workspace: WorkspaceRoot,
    settings: TierGateSettings | None = None,
    policy: TierPolicy | None = None,
    run_fn: RunCommand = subprocess.run,
    audit_fn: AuditFn = run_tier_audit,
) -> StartAuditOutcome:
    """Audit at tier start, store the baseline scores and write the ``-start`` report."""
    resolved_tier = parse_tier(tier)
    resolved_settings = settings if settings is not None else TierGateSettings()
    audit = audit_fn(
        resolved_tier,
        identifier,
        feature_name,
        changed_files,
        workspace=workspace,
        policy=policy,
        settings=resolved_settings,
        run_fn=run_fn,
    )
    store = BaselineStore(workspace, resolved_settings)
    baseline_path = store.store(
        resolved_tier,
        identifier,
        feature_name,
        audit.scores(),
        timestamp=audit.timestamp,
    )
    if baseline_path is None:
        audit = audit.with_errors(["baseline: could not store start scores"])
    audit = write_report(
        audit,
        workspace=workspace,
        settings=resolved_settings,
        audit_type=AuditType.START,
    )
    return StartAuditOutcome(audit=audit, baseline_path=baseline_path)


def run_end_audit(
    tier: Tier | str,
    identifier: str,
    feature_name: str,
    changed_files: Sequence[str] | None = None,
    *,
    workspace: WorkspaceRoot,
    settings: TierGateSettings | None = None,
    policy: TierPolicy | None = None,
    commit: bool | None = None,
    run_fn: RunCommand = subprocess.run,
    audit_fn: AuditFn = run_tier_audit,
) -> EndAuditOutcome:
    """Audit at tier end, autofix, compare against the start baseline and report.

    ``commit`` overrides the ``[git] commit_autofix`` setting when given.
    """
    resolved_tier = parse_tier(tier)
    resolved_settings = settings if settings is not None else TierGateSettings()
    resolved_policy = policy if policy is not None else load_tier_policy(resolved_settings.policy_path)
    audit = audit_fn(
        resolved_tier,
        identifier,
        feature_name,
        changed_files,
        workspace=workspace,
        policy=resolved_policy,
        settings=resolved_settings,
        run_fn=run_fn,
    )

    autofix: AutofixResult | None = None
    if resolved_settings.autofix_enabled:
        autofix = run_tier_autofix(
            resolved_tier,
            audit,
            max_cascade_depth=resolved_policy.config_for(resolved_tier).max_cascade_depth,
            changed_files=changed_files,
            feature_name=feature_name,
            workspace=workspace,
            settings=resolved_settings,
            policy=resolved_policy,
            run_fn=run_fn,
            audit_fn=audit_fn,
        )
    else:
        _LOG.info("autofix disabled; skipping %s autofix", resolved_tier.value)

    baseline = BaselineStore(workspace, resolved_settings).load(resolved_tier, identifier, feature_name)
    comparisons = tuple(compare_scores(baseline, audit.scores()))

    audit = write_report(
        audit,
        workspace=workspace,
        settings=resolved_settings,
        audit_type=AuditType.END,
        comparisons=comparisons,
        autofix=autofix,
    )

    commit_outcome: CommitOutcome | None = None
    should_commit = resolved_settings.commit_autofix if commit is None else commit
    if should_commit and autofix is not None:
        commit_outcome = commit_autofix_changes(
            resolved_tier,
            identifier,
            autofix,
            workspace=workspace,
            run_fn=run_fn,
        )
    return EndAuditOutcome(
        audit=audit,
        comparisons=comparisons,
        autofix=autofix,
        commit=commit_outcome,
    )
