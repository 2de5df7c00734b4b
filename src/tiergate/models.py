from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Iterable, Mapping

from tiergate.exceptions import UnknownTierError


class Tier(StrEnum):
    FEATURE = "feature"
    PHASE = "phase"
    SESSION = "session"
    TASK = "task"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class AuditStatus(StrEnum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class ComparisonStatus(StrEnum):
    IMPROVED = "improved"
    REGRESSED = "regressed"
    UNCHANGED = "unchanged"
    NEW = "new"
    MISSING = "missing"


class AutofixAction(StrEnum):
    SCRIPT = "script"
    AGENT = "agent"


# Broadest first; the cascade walks this strictly downward.
TIER_ORDER: tuple[Tier, ...] = (Tier.FEATURE, Tier.PHASE, Tier.SESSION, Tier.TASK)


def parse_tier(value: object) -> Tier:
    if isinstance(value, Tier):
        return value
    text = str(value).strip().lower()
    try:
        return Tier(text)
    except ValueError as exc:
        raise UnknownTierError(value) from exc


def child_tier(tier: Tier) -> Tier | None:
    index = TIER_ORDER.index(tier)
    if index + 1 >= len(TIER_ORDER):
        return None
    return TIER_ORDER[index + 1]


@dataclass(frozen=True)
class Finding:
    severity: Severity
    message: str
    location: str | None = None
    suggestion: str | None = None

    @property
    def match_text(self) -> str:
        return f"{self.message} {self.suggestion or ''}"

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.location is not None:
            payload["location"] = self.location
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        return payload


def status_for_findings(findings: Iterable[Finding]) -> AuditStatus:
    severities = {finding.severity for finding in findings}
    if Severity.ERROR in severities:
        return AuditStatus.FAIL
    if Severity.WARNING in severities:
        return AuditStatus.WARN
    return AuditStatus.PASS


def status_for_statuses(statuses: Iterable[AuditStatus]) -> AuditStatus:
    seen = set(statuses)
    if AuditStatus.FAIL in seen:
        return AuditStatus.FAIL
    if AuditStatus.WARN in seen:
        return AuditStatus.WARN
    return AuditStatus.PASS


@dataclass(frozen=True)
class AuditResult:
    category: str
    findings: tuple[Finding, ...] = ()
    recommendations: tuple[str, ...] = ()
    summary: str = ""
    score: int | None = None

    @property
    def status(self) -> AuditStatus:
        return status_for_findings(self.findings)

    def count(self, severity: Severity) -> int:
        return sum(1 for finding in self.findings if finding.severity is severity)

    def to_payload(self) -> dict[str, object]:
        return {
            "category": self.category,
            "status": self.status.value,
            "score": self.score,
            "findings": [finding.to_payload() for finding in self.findings],
            "recommendations": list(self.recommendations),
            "summary": self.summary,
        }


@dataclass(frozen=True)
class TierAuditResult:
    tier: Tier
    identifier: str
    feature_name: str
    results: tuple[AuditResult, ...]
    timestamp: str
    report_path: str = ""
    errors: tuple[str, ...] = ()
    extra_scores: Mapping[str, int] = field(default_factory=dict)

    @property
    def overall_status(self) -> AuditStatus:
        return status_for_statuses(result.status for result in self.results)

    @property
    def findings(self) -> tuple[Finding, ...]:
        return tuple(finding for result in self.results for finding in result.findings)

    def scores(self) -> dict[str, int]:
        scores = {
            result.category: result.score
            for result in self.results
            if result.score is not None
        }
        for category, score in self.extra_scores.items():
            scores.setdefault(category, score)
        return scores

    def count(self, severity: Severity) -> int:
        return sum(result.count(severity) for result in self.results)

    def with_report_path(self, report_path: str) -> TierAuditResult:
        return replace(self, report_path=report_path)

    def with_errors(self, errors: Iterable[str]) -> TierAuditResult:
        return replace(self, errors=(*self.errors, *errors))

    def to_payload(self) -> dict[str, object]:
        return {
            "tier": self.tier.value,
            "identifier": self.identifier,
            "feature_name": self.feature_name,
            "overall_status": self.overall_status.value,
            "timestamp": self.timestamp,
            "report_path": self.report_path,
            "results": [result.to_payload() for result in self.results],
            "extra_scores": dict(self.extra_scores),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class BaselineSnapshot:
    tier: Tier
    identifier: str
    feature_name: str
    timestamp: str
    scores: Mapping[str, int]

    def to_payload(self) -> dict[str, object]:
        return {
            "tier": self.tier.value,
            "identifier": self.identifier,
            "feature_name": self.feature_name,
            "timestamp": self.timestamp,
            "scores": dict(self.scores),
        }


@dataclass(frozen=True)
class Comparison:
    category: str
    status: ComparisonStatus
    start_score: int | None = None
    end_score: int | None = None
    delta: int | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "category": self.category,
            "start_score": self.start_score,
            "end_score": self.end_score,
            "delta": self.delta,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class AutofixEntry:
    action: AutofixAction
    audit_name: str
    category: str
    finding: Finding
    affected_files: tuple[str, ...] = ()
    applied: bool = False
    command: str | None = None
    agent_directive: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "action": self.action.value,
            "audit_name": self.audit_name,
            "category": self.category,
            "finding": self.finding.to_payload(),
            "command": self.command,
            "agent_directive": self.agent_directive,
            "affected_files": list(self.affected_files),
            "applied": self.applied,
        }


@dataclass(frozen=True)
class AutofixResult:
    tier: Tier
    summary: str
    cascade_depth: int = 0
    script_fix_entries: tuple[AutofixEntry, ...] = ()
    agent_fix_entries: tuple[AutofixEntry, ...] = ()
    affected_files: tuple[str, ...] = ()
    cascade_results: tuple[AutofixResult, ...] = ()

    @property
    def script_fixes_applied(self) -> int:
        return sum(1 for entry in self.script_fix_entries if entry.applied)

    def has_changes(self) -> bool:
        return bool(
            self.script_fixes_applied
            or self.agent_fix_entries
            or self.affected_files
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "tier": self.tier.value,
            "cascade_depth": self.cascade_depth,
            "script_fixes_applied": self.script_fixes_applied,
            "script_fix_entries": [entry.to_payload() for entry in self.script_fix_entries],
            "agent_fix_entries": [entry.to_payload() for entry in self.agent_fix_entries],
            "affected_files": list(self.affected_files),
            "cascade_results": [child.to_payload() for child in self.cascade_results],
            "summary": self.summary,
        }
