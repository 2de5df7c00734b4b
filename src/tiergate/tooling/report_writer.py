from __future__ import annotations

import logging
from enum import StrEnum
from pathlib import Path
from typing import Sequence

from tiergate.config import TierGateSettings
from tiergate.models import AutofixResult, Comparison, TierAuditResult
from tiergate.runtime.json_io import write_json
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.baseline_store import audits_dir, overall_delta
from tiergate.tooling.scoring import average_score

_LOG = logging.getLogger(__name__)


class AuditType(StrEnum):
    START = "start"
    END = "end"


def report_stem(audit: TierAuditResult, audit_type: AuditType) -> str:
    suffix = "-start-audit" if audit_type is AuditType.START else "-audit"
    return f"{audit.tier.value}-{audit.identifier}{suffix}"


def report_paths(directory: Path, stem: str) -> tuple[Path, Path]:
    return directory / f"{stem}.md", directory / f"{stem}.json"


def _signed(value: int | None) -> str:
    if value is None:
        return "N/A"
    return f"+{value}" if value >= 0 else str(value)


def _optional(value: int | None) -> str:
    return "N/A" if value is None else str(value)


def _comparison_lines(comparisons: Sequence[Comparison]) -> list[str]:
    lines = [
        "## Score Comparison",
        "",
        "| Category | Start | End | Delta | Status |",
        "|----------|-------|-----|-------|--------|",
    ]
    for comparison in comparisons:
        lines.append(
            f"| {comparison.category} | {_optional(comparison.start_score)} | "
            f"{_optional(comparison.end_score)} | {_signed(comparison.delta)} | "
            f"{comparison.status.value} |"
        )
    delta = overall_delta(list(comparisons))
    if delta is not None:
        starts = [c.start_score for c in comparisons if c.start_score is not None]
        ends = [c.end_score for c in comparisons if c.end_score is not None]
        start_avg = round(sum(starts) / len(starts)) if starts else 0
        end_avg = round(sum(ends) / len(ends)) if ends else 0
        direction = "improvement" if delta >= 0 else "regression"
        lines.extend(
            [
                "",
                f"**Overall:** {start_avg} -> {end_avg} ({_signed(delta)} points {direction})",
            ]
        )
    lines.append("")
    return lines


def _autofix_lines(autofix: AutofixResult) -> list[str]:
    lines = ["## Autofix", "", autofix.summary, ""]
    for entry in autofix.script_fix_entries:
        state = "applied" if entry.applied else "failed"
        lines.append(f"- script `{entry.command}` for {entry.audit_name} ({state})")
    for entry in autofix.agent_fix_entries:
        lines.append(f"- agent {entry.audit_name}: {entry.agent_directive}")
    for child in autofix.cascade_results:
        lines.append(f"- cascade {child.tier.value} (depth {child.cascade_depth}): {child.summary}")
    lines.append("")
    return lines


def render_markdown(
    audit: TierAuditResult,
    audit_type: AuditType = AuditType.END,
    comparisons: Sequence[Comparison] = (),
    autofix: AutofixResult | None = None,
) -> str:
    if audit_type is AuditType.START:
        title = f"# {audit.tier.label} Start Audit: {audit.identifier}"
    else:
        title = f"# Audit Report: {audit.tier.value} {audit.identifier}"
    lines = [title, ""]
    if audit_type is AuditType.START:
        lines.append(f"**Purpose:** Baseline quality assessment before {audit.tier.value} work begins")
    lines.extend(
        [
            f"**Feature:** {audit.feature_name}",
            f"**Tier:** {audit.tier.value}",
            f"**Identifier:** {audit.identifier}",
            f"**Timestamp:** {audit.timestamp}",
            f"**Overall Status:** {audit.overall_status.value.upper()}",
            "",
            "## Summary",
            "",
        ]
    )
    statuses = [result.status.value for result in audit.results]
    lines.extend(
        [
            f"- **Pass:** {statuses.count('pass')}",
            f"- **Warn:** {statuses.count('warn')}",
            f"- **Fail:** {statuses.count('fail')}",
            "",
        ]
    )
    average = average_score(audit.results)
    if average is not None:
        label = "Baseline Score" if audit_type is AuditType.START else "Average Score"
        lines.extend([f"**{label}:** {average}/100", ""])

    if audit_type is AuditType.END and comparisons:
        lines.extend(_comparison_lines(comparisons))

    by_category = {comparison.category: comparison for comparison in comparisons}
    for result in audit.results:
        lines.extend([f"## {result.category} audit", "", f"**Status:** {result.status.value.upper()}"])
        if result.score is not None:
            comparison = by_category.get(result.category)
            if audit_type is AuditType.START:
                lines.append(f"**Baseline Score:** {result.score}/100")
            elif comparison is not None and comparison.start_score is not None:
                lines.append(f"**Score:** {result.score}/100 ({_signed(comparison.delta)} from baseline)")
                lines.append(f"**Baseline:** {comparison.start_score}/100")
            else:
                lines.append(f"**Score:** {result.score}/100")
        lines.append("")
        if result.summary:
            lines.extend([result.summary, ""])
        if result.findings:
            lines.extend(["### Findings", ""])
            for finding in result.findings:
                lines.append(f"- **{finding.severity.value.upper()}**: {finding.message}")
                if finding.location:
                    lines.append(f"  - Location: {finding.location}")
                if finding.suggestion:
                    lines.append(f"  - Suggestion: {finding.suggestion}")
            lines.append("")
        if result.recommendations:
            lines.extend(["### Recommendations", ""])
            lines.extend(f"- {item}" for item in result.recommendations)
            lines.append("")

    if audit.extra_scores:
        lines.extend(["## Additional Scores", ""])
        lines.extend(f"- {category}: {score}/100" for category, score in audit.extra_scores.items())
        lines.append("")

    if autofix is not None:
        lines.extend(_autofix_lines(autofix))

    if audit.errors:
        lines.extend(["## Errors", ""])
        lines.extend(f"- {error}" for error in audit.errors)
        lines.append("")

    overall: dict[str, None] = {}
    for result in audit.results:
        for item in result.recommendations:
            overall.setdefault(item, None)
    if overall:
        lines.extend(["## Overall Recommendations", ""])
        lines.extend(f"- {item}" for item in overall)
        lines.append("")
    return "\n".join(lines)


def report_payload(
    audit: TierAuditResult,
    audit_type: AuditType,
    comparisons: Sequence[Comparison] = (),
    autofix: AutofixResult | None = None,
) -> dict[str, object]:
    return {
        **audit.to_payload(),
        "audit_type": audit_type.value,
        "baseline_comparison": [comparison.to_payload() for comparison in comparisons],
        "autofix": autofix.to_payload() if autofix is not None else None,
    }


def write_report(
    audit: TierAuditResult,
    *,
    workspace: WorkspaceRoot,
    settings: TierGateSettings | None = None,
    audit_type: AuditType = AuditType.END,
    comparisons: Sequence[Comparison] = (),
    autofix: AutofixResult | None = None,
) -> TierAuditResult:
    """Write the Markdown report and its JSON mirror.

    Returns the audit with ``report_path`` set, or with a write error appended
    when the files could not be written.
    """
    resolved_settings = settings if settings is not None else TierGateSettings()
    directory = audits_dir(workspace, resolved_settings, audit.feature_name)
    stem = report_stem(audit, audit_type)
    markdown_path, json_path = report_paths(directory, stem)
    audit = audit.with_report_path(workspace.relative(markdown_path))
    try:
        directory.mkdir(parents=True, exist_ok=True)
        markdown_path.write_text(
            render_markdown(audit, audit_type, comparisons, autofix),
            encoding="utf-8",
        )
        write_json(
            json_path,
            report_payload(audit, audit_type, comparisons, autofix),
        )
    except OSError as exc:
        _LOG.warning("could not write audit report %s: %s", markdown_path, exc)
        return audit.with_report_path("").with_errors([f"report: {exc}"])
    return audit
