from __future__ import annotations

import json

from tiergate.models import (
    AuditResult,
    AutofixResult,
    Comparison,
    ComparisonStatus,
    Finding,
    Severity,
    Tier,
    TierAuditResult,
)
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.report_writer import AuditType, render_markdown, write_report


def _audit() -> TierAuditResult:
    return TierAuditResult(
        tier=Tier.SESSION,
        identifier="2.1",
        feature_name="checkout",
        results=(
            AuditResult(
                category="security",
                findings=(
                    Finding(
                        severity=Severity.ERROR,
                        message="1 exposed secret(s) found",
                        location="client/.audit-reports/security-audit.json",
                        suggestion="Review client/.audit-reports/security-audit.md for exposed secrets",
                    ),
                ),
                recommendations=("Review audit reports for errors",),
                summary="security: 1 error(s), 0 warning(s), 0 info",
                score=80,
            ),
            AuditResult(category="typecheck", score=100),
        ),
        timestamp="2026-03-01T12:00:00+00:00",
    )


def test_start_report_file_names(workspace) -> None:
    audit = write_report(_audit(), workspace=workspace, audit_type=AuditType.START)
    assert audit.report_path == ".tiergate/features/checkout/audits/session-2.1-start-audit.md"
    markdown = (workspace.path / audit.report_path).read_text(encoding="utf-8")
    assert markdown.startswith("# Session Start Audit: 2.1")
    assert "**Baseline Score:** 90/100" in markdown
    payload = json.loads(
        (workspace.path / ".tiergate/features/checkout/audits/session-2.1-start-audit.json").read_text(
            encoding="utf-8"
        )
    )
    assert payload["audit_type"] == "start"
    assert payload["baseline_comparison"] == []
    assert payload["overall_status"] == "fail"
    assert payload["report_path"] == audit.report_path


def test_end_report_includes_comparison_and_autofix(workspace) -> None:
    comparisons = [
        Comparison(category="security", status=ComparisonStatus.REGRESSED, start_score=90, end_score=80, delta=-10),
        Comparison(category="typecheck", status=ComparisonStatus.NEW, end_score=100),
    ]
    autofix = AutofixResult(
        tier=Tier.SESSION,
        summary="Tier session: 0 script fix(es) applied, 0 agent directive(s). Affected files: 0. Cascade: 0 lower-tier re-audit(s) run.",
    )
    audit = write_report(
        _audit(),
        workspace=workspace,
        comparisons=comparisons,
        autofix=autofix,
    )
    assert audit.report_path.endswith("session-2.1-audit.md")
    markdown = (workspace.path / audit.report_path).read_text(encoding="utf-8")
    assert "| security | 90 | 80 | -10 | regressed |" in markdown
    assert "| typecheck | N/A | 100 | N/A | new |" in markdown
    assert "**Overall:** 90 -> 90 (-10 points regression)" in markdown
    assert "**Score:** 80/100 (-10 from baseline)" in markdown
    assert "## Autofix" in markdown
    payload = json.loads((workspace.path / audit.report_path.replace(".md", ".json")).read_text(encoding="utf-8"))
    assert payload["audit_type"] == "end"
    assert [item["status"] for item in payload["baseline_comparison"]] == ["regressed", "new"]
    assert payload["autofix"]["tier"] == "session"


def test_markdown_lists_findings_and_unique_recommendations() -> None:
    markdown = render_markdown(_audit())
    assert "- **ERROR**: 1 exposed secret(s) found" in markdown
    assert "  - Location: client/.audit-reports/security-audit.json" in markdown
    assert markdown.count("- Review audit reports for errors") == 2
    assert "- **Fail:** 1" in markdown
    assert "- **Pass:** 1" in markdown


def test_write_failure_is_recorded(tmp_path) -> None:
    (tmp_path / ".tiergate").write_text("file in the way", encoding="utf-8")
    audit = write_report(_audit(), workspace=WorkspaceRoot.from_path(tmp_path))
    assert audit.report_path == ""
    assert audit.errors and audit.errors[0].startswith("report:")
