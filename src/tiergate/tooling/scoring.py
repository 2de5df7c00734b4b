"""Deterministic scoring of audit findings.

Every function here is pure: identical findings and weights always give the
same status and score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from tiergate.models import (
    AuditResult,
    AuditStatus,
    Finding,
    Severity,
    status_for_findings,
)

MAX_SCORE = 100
MIN_SCORE = 0


@dataclass(frozen=True)
class PenaltyWeights:
    error: int = 20
    warning: int = 10
    info: int = 2

    def for_severity(self, severity: Severity) -> int:
        if severity is Severity.ERROR:
            return self.error
        if severity is Severity.WARNING:
            return self.warning
        return self.info


DEFAULT_WEIGHTS = PenaltyWeights()


@dataclass(frozen=True)
class ScoreOutcome:
    status: AuditStatus
    score: int


def derive_status(findings: Iterable[Finding]) -> AuditStatus:
    return status_for_findings(findings)


def score_findings(
    findings: Sequence[Finding],
    weights: PenaltyWeights = DEFAULT_WEIGHTS,
) -> ScoreOutcome:
    penalty = sum(weights.for_severity(finding.severity) for finding in findings)
    score = max(MIN_SCORE, min(MAX_SCORE, MAX_SCORE - penalty))
    return ScoreOutcome(status=derive_status(findings), score=score)


def average_score(results: Iterable[AuditResult]) -> int | None:
    scores = [result.score for result in results if result.score is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores))
