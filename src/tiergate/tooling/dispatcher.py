from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timezone
from typing import Callable, Mapping, Sequence

from tiergate.config import TierGateSettings
from tiergate.models import AuditResult, Finding, Severity, Tier, TierAuditResult, parse_tier
from tiergate.runtime.json_io import load_json_path
from tiergate.runtime.process import RunCommand
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.schema import parse_scanner_report
from tiergate.tooling import finding_generators
from tiergate.tooling.scanner_invoker import invoke_scanner
from tiergate.tooling.scoring import PenaltyWeights, score_findings
from tiergate.tooling.tier_policy import (
    AuditSpec,
    ScoreSource,
    TierAuditConfig,
    TierPolicy,
    load_tier_policy,
)

_LOG = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _nested_value(payload: Mapping[str, object], key_path: Sequence[str]) -> object | None:
    current: object = payload
    for key in key_path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _as_score(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0, min(100, round(value)))


def category_summary(category: str, findings: Sequence[Finding]) -> str:
    errors = sum(1 for f in findings if f.severity is Severity.ERROR)
    warnings = sum(1 for f in findings if f.severity is Severity.WARNING)
    infos = sum(1 for f in findings if f.severity is Severity.INFO)
    return f"{category}: {errors} error(s), {warnings} warning(s), {infos} info"


def tier_summary(audit: TierAuditResult) -> str:
    return (
        f"Ran {len(audit.results)} audits; found "
        f"{audit.count(Severity.ERROR)} error(s), "
        f"{audit.count(Severity.WARNING)} warning(s), "
        f"{audit.count(Severity.INFO)} info signal(s)."
    )


def audit_category(
    spec: AuditSpec,
    *,
    config: TierAuditConfig,
    workspace: WorkspaceRoot,
    weights: PenaltyWeights,
) -> AuditResult:
    artifact_path = workspace.resolve(config.report_dir) / spec.artifact
    ctx = finding_generators.ArtifactContext(
        category=spec.category,
        location=workspace.relative(artifact_path),
    )
    raw = load_json_path(artifact_path)
    report = parse_scanner_report(raw)
    if raw is not None and report is None:
        _LOG.warning("ignoring malformed %s artifact: %s", spec.category, ctx.location)
    findings = tuple(finding_generators.generate_findings(report, ctx))
    outcome = score_findings(findings, weights)
    return AuditResult(
        category=spec.category,
        findings=findings,
        recommendations=tuple(finding_generators.recommendations_for(findings)),
        summary=category_summary(spec.category, findings),
        score=outcome.score,
    )


def collect_extra_scores(
    sources: Sequence[ScoreSource],
    *,
    config: TierAuditConfig,
    workspace: WorkspaceRoot,
    audited: Sequence[str],
) -> dict[str, int]:
    scores: dict[str, int] = {}
    report_dir = workspace.resolve(config.report_dir)
    for source in sources:
        if source.category in audited:
            _LOG.warning(
                "score source %s shadows an audited category; skipping",
                source.category,
            )
            continue
        payload = load_json_path(report_dir / source.artifact)
        if not isinstance(payload, Mapping):
            continue
        score = _as_score(_nested_value(payload, source.key_path))
        if score is None:
            _LOG.debug(
                "score source %s has no numeric value at %s",
                source.category,
                ".".join(source.key_path),
            )
            continue
        scores[source.category] = score
    return scores


def run_tier_audit(
    tier: Tier | str,
    identifier: str,
    feature_name: str,
    changed_files: Sequence[str] | None = None,
    *,
    workspace: WorkspaceRoot,
    policy: TierPolicy | None = None,
    settings: TierGateSettings | None = None,
    run_fn: RunCommand = subprocess.run,
    clock: Clock = _utc_now,
) -> TierAuditResult:
    """Run every configured audit for one tier and collect the scored results.

    The scanner runs once; each category is then read from its artifact in
    policy order. A category that raises is reported in ``errors`` and the
    remaining categories still run.
    """
    resolved_tier = parse_tier(tier)
    resolved_settings = settings if settings is not None else TierGateSettings()
    resolved_policy = policy if policy is not None else load_tier_policy(resolved_settings.policy_path)
    config = resolved_policy.config_for(resolved_tier)

    invoke_scanner(
        config,
        workspace=workspace,
        changed_files=changed_files,
        timeout_seconds=resolved_settings.scanner_timeout_seconds,
        run_fn=run_fn,
    )

    results: list[AuditResult] = []
    errors: list[str] = []
    for spec in config.audits:
        try:
            results.append(
                audit_category(
                    spec,
                    config=config,
                    workspace=workspace,
                    weights=resolved_policy.weights_for(spec.category),
                )
            )
        except Exception as exc:
            _LOG.warning("%s audit raised: %s", spec.category, exc)
            errors.append(f"{spec.category}: {exc}")

    extra_scores = collect_extra_scores(
        config.score_sources,
        config=config,
        workspace=workspace,
        audited=config.categories(),
    )
    return TierAuditResult(
        tier=resolved_tier,
        identifier=identifier,
        feature_name=feature_name,
        results=tuple(results),
        timestamp=clock().isoformat(),
        errors=tuple(errors),
        extra_scores=extra_scores,
    )
