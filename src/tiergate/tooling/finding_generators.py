"""Per-category translation of scanner artifacts into findings.

Generators are looked up by category. Categories without a dedicated
generator fall back to a generic "produced output" signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Optional

from tiergate.models import Finding, Severity
from tiergate.schema import ScannerReport, UntestedPriorityDTO

COMPLEXITY_THRESHOLD = 20
HARDCODING_THRESHOLD = 15
DUPLICATION_LEVERAGE_THRESHOLD = 20
UNTESTED_PRIORITY_THRESHOLD = 7.0
UNUSED_CLEANUP_THRESHOLD = 50


@dataclass(frozen=True)
class ArtifactContext:
    category: str
    location: str

    @property
    def markdown_location(self) -> str:
        return str(PurePosixPath(self.location).with_suffix(".md"))

    def review(self, purpose: str) -> str:
        return f"Review {self.markdown_location} for {purpose}"


Generator = Callable[[ScannerReport, ArtifactContext], list[Finding]]

_GENERATORS_BY_CATEGORY: dict[str, Generator] = {}


def register_generator(category: str, generator: Generator) -> None:
    _GENERATORS_BY_CATEGORY[category] = generator


def generator_for(category: str) -> Generator:
    return _GENERATORS_BY_CATEGORY.get(category, generic_findings)


def missing_artifact_finding(ctx: ArtifactContext) -> Finding:
    return Finding(
        severity=Severity.INFO,
        message=f"{ctx.category} audit not yet run (no JSON output found)",
        location=ctx.location,
    )


def generate_findings(report: ScannerReport | None, ctx: ArtifactContext) -> list[Finding]:
    if report is None:
        return [missing_artifact_finding(ctx)]
    return generator_for(ctx.category)(report, ctx)


def typecheck_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    findings: list[Finding] = []
    p0_pools = [pool for pool in report.pools if pool.priority == "P0"]
    if report.errors:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{len(report.errors)} TypeScript error(s) found",
                location=ctx.location,
                suggestion=ctx.review("details"),
            )
        )
    if p0_pools:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=f"{len(p0_pools)} P0 type error pool(s) (high priority)",
                location=ctx.location,
                suggestion=ctx.review("P0 pools"),
            )
        )
    return findings


def complexity_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    hot = [entry for entry in report.files if entry.effective_score >= COMPLEXITY_THRESHOLD]
    if not hot:
        return []
    return [
        Finding(
            severity=Severity.WARNING,
            message=f"{len(hot)} file(s) with high complexity scores",
            location=ctx.location,
            suggestion=ctx.review("top hotspots"),
        )
    ]


def loop_mutation_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    hits = [entry for entry in report.files if entry.for_each_mutation_hits]
    if not hits:
        return []
    return [
        Finding(
            severity=Severity.INFO,
            message=f"{len(hits)} file(s) with forEach→mutation patterns (refactor candidates)",
            location=ctx.location,
            suggestion=ctx.review("refactor opportunities"),
        )
    ]


def hardcoding_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    hot = [entry for entry in report.files if (entry.score or 0) >= HARDCODING_THRESHOLD]
    if not hot:
        return []
    return [
        Finding(
            severity=Severity.INFO,
            message=f"{len(hot)} file(s) with hardcoding patterns (config-driven candidates)",
            location=ctx.location,
            suggestion=ctx.review("config-driven refactor opportunities"),
        )
    ]


def error_handling_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    critical = [issue for issue in report.issues if issue.severity in {"critical", "error"}]
    warnings = [issue for issue in report.issues if issue.severity == "warning"]
    findings: list[Finding] = []
    if critical:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=f"{len(critical)} critical issue(s) (silent failures, empty catch blocks)",
                location=ctx.location,
                suggestion=f"Review {ctx.location} for critical patterns",
            )
        )
    if warnings:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{len(warnings)} warning(s) (defaults, fallbacks, legacy patterns)",
                location=ctx.location,
                suggestion=f"Review {ctx.location} for fallback patterns",
            )
        )
    return findings


def naming_convention_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    if not report.files:
        return []
    return [
        Finding(
            severity=Severity.INFO,
            message=f"{len(report.files)} file(s) with naming convention findings",
            location=ctx.location,
            suggestion=ctx.review("convention fixes"),
        )
    ]


def duplication_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    groups = [group for group in report.groups if group.leverage >= DUPLICATION_LEVERAGE_THRESHOLD]
    if not groups:
        return []
    return [
        Finding(
            severity=Severity.INFO,
            message=f"{len(groups)} duplication group(s) with high consolidation leverage",
            location=ctx.location,
            suggestion=ctx.review("DRY opportunities"),
        )
    ]


def _is_high_priority_untested(priority: Optional[UntestedPriorityDTO]) -> bool:
    if priority is None:
        return False
    if priority.bucket == "P0":
        return True
    return priority.overall is not None and priority.overall >= UNTESTED_PRIORITY_THRESHOLD


def untested_source_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    summary = report.summary
    high_priority = [
        entry for entry in report.untested_source if _is_high_priority_untested(entry.priority)
    ]
    findings: list[Finding] = []
    if summary.untested_source_files > 0:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=(
                    f"{summary.untested_source_files} untested source file(s) "
                    f"({summary.coverage_percentage:g}% coverage)"
                ),
                location=ctx.location,
                suggestion=ctx.review("test coverage gaps"),
            )
        )
    if high_priority:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=f"{len(high_priority)} P0/high-priority untested file(s)",
                location=ctx.location,
                suggestion=ctx.review("critical test gaps"),
            )
        )
    if summary.orphaned_test_files > 0:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{summary.orphaned_test_files} orphaned test file(s) (no corresponding source)",
                location=ctx.location,
                suggestion=ctx.review("orphaned tests"),
            )
        )
    return findings


def unused_code_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    high_priority = [entry for entry in report.files if (entry.priority or "P2") in {"P0", "P1"}]
    total_issues = sum(len(entry.issues) for entry in report.files)
    findings: list[Finding] = []
    if high_priority:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=(
                    f"{len(high_priority)} file(s) with P0/P1 unused code "
                    f"({total_issues} total issues)"
                ),
                location=ctx.location,
                suggestion=ctx.review("unused exports/functions"),
            )
        )
    if total_issues > UNUSED_CLEANUP_THRESHOLD:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{total_issues} unused code issues found (cleanup opportunity)",
                location=ctx.location,
                suggestion=ctx.review("cleanup candidates"),
            )
        )
    return findings


def security_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    summary = report.summary
    p0_categories = [category for category in report.categories if category.priority == "P0"]
    p0_files = [entry for entry in report.files if entry.priority == "P0"]
    findings: list[Finding] = []
    if summary.total_errors > 0:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=(
                    f"{summary.total_errors} security error(s) found "
                    f"({len(p0_categories)} P0 categories, {len(p0_files)} P0 files)"
                ),
                location=ctx.location,
                suggestion=ctx.review("critical security issues"),
            )
        )
    elif summary.total_warnings > 0:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{summary.total_warnings} security warning(s) found",
                location=ctx.location,
                suggestion=ctx.review("security best practices"),
            )
        )
    by_id = {category.id: category for category in report.categories if category.id}
    csrf = by_id.get("csrf")
    if csrf is not None and csrf.errors:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=f"{len(csrf.errors)} CSRF protection issue(s) found",
                location=ctx.location,
                suggestion=ctx.review("routes missing CSRF protection"),
            )
        )
    secrets = by_id.get("secrets")
    if secrets is not None and secrets.errors:
        findings.append(
            Finding(
                severity=Severity.ERROR,
                message=f"{len(secrets.errors)} exposed secret(s) found",
                location=ctx.location,
                suggestion=ctx.review("exposed secrets"),
            )
        )
    return findings


def type_health_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    p0_count = report.rule_count("nested-partial", "record-string-any")
    high_fan_in = len(report.repair_waves.high_fan_in)
    findings: list[Finding] = []
    if p0_count:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{p0_count} P0 type health finding(s) (nested utility types, Record<string,any>)",
                location=ctx.location,
                suggestion=ctx.review("repair wave 1 (local fixes)"),
            )
        )
    if high_fan_in:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{high_fan_in} high-fan-in type finding(s) requiring coordinated repair",
                location=ctx.location,
                suggestion=ctx.review("wave 3 multi-file repair planning"),
            )
        )
    return findings


def component_health_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    coupling = report.rule_count("excessive-prop-count", "component-coupling")
    high_fan_in = len(report.repair_waves.high_fan_in)
    findings: list[Finding] = []
    if coupling:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{coupling} component(s) with excessive props or coupling",
                location=ctx.location,
                suggestion=ctx.review("decomposition opportunities"),
            )
        )
    if high_fan_in:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{high_fan_in} high-fan-in component finding(s) requiring coordinated refactor",
                location=ctx.location,
                suggestion=ctx.review("wave 3 multi-file planning"),
            )
        )
    return findings


def composable_health_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    missing_return = report.rule_count("missing-return-type")
    high_fan_in = len(report.repair_waves.high_fan_in)
    findings: list[Finding] = []
    if missing_return:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{missing_return} composable(s) missing explicit return type",
                location=ctx.location,
                suggestion=ctx.review("wave 1 local fixes"),
            )
        )
    if high_fan_in:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{high_fan_in} high-fan-in composable finding(s) requiring coordinated repair",
                location=ctx.location,
                suggestion=ctx.review("wave 3 multi-file planning"),
            )
        )
    return findings


def data_flow_health_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    untyped = report.rule_count("untyped-inject")
    deep = report.rule_count("provide-inject-depth")
    gaps = report.rule_count("type-boundary-gap")
    findings: list[Finding] = []
    if untyped or deep:
        findings.append(
            Finding(
                severity=Severity.WARNING,
                message=f"{untyped} untyped inject(s), {deep} deep provide/inject chain(s)",
                location=ctx.location,
                suggestion=ctx.review("provide/inject hygiene"),
            )
        )
    if gaps:
        findings.append(
            Finding(
                severity=Severity.INFO,
                message=f"{gaps} type boundary gap(s) in data flow",
                location=ctx.location,
                suggestion=ctx.review("type alignment opportunities"),
            )
        )
    return findings


def generic_findings(report: ScannerReport, ctx: ArtifactContext) -> list[Finding]:
    produced = bool(
        report.files
        or report.errors
        or report.summary.total_errors
        or report.groups
    )
    if not produced:
        return []
    return [
        Finding(
            severity=Severity.INFO,
            message=f"{ctx.category} audit produced output (review JSON for details)",
            location=ctx.location,
            suggestion=f"Review {ctx.location} for findings",
        )
    ]


register_generator("typecheck", typecheck_findings)
register_generator("component-logic", complexity_findings)
register_generator("composables-logic", complexity_findings)
register_generator("loop-mutations", loop_mutation_findings)
register_generator("hardcoding", hardcoding_findings)
register_generator("error-handling", error_handling_findings)
register_generator("naming-convention", naming_convention_findings)
register_generator("duplication", duplication_findings)
register_generator("test", untested_source_findings)
register_generator("unused-code", unused_code_findings)
register_generator("security", security_findings)
register_generator("type-health", type_health_findings)
register_generator("component-health", component_health_findings)
register_generator("composable-health", composable_health_findings)
register_generator("data-flow-health", data_flow_health_findings)


def recommendations_for(findings: list[Finding] | tuple[Finding, ...]) -> list[str]:
    recommendations: list[str] = []
    severities = {finding.severity for finding in findings}
    if Severity.ERROR in severities:
        recommendations.append("Review audit reports for errors")
    if Severity.WARNING in severities:
        recommendations.append("Review audit reports for warnings")
    messages = [finding.message for finding in findings]
    if any("forEach" in message for message in messages):
        recommendations.append(
            "Consider refactoring forEach→mutation patterns to functional transforms (map/reduce/filter)"
        )
    if any("hardcoding" in message for message in messages):
        recommendations.append("Consider moving hardcoded patterns to config-driven approaches")
    if any("duplication" in message for message in messages):
        recommendations.append("Review duplication audit for consolidation opportunities")
    return recommendations
