from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from tiergate.config import TierGateSettings, load_settings
from tiergate.exceptions import UnknownTierError
from tiergate.models import AuditStatus, Tier, TierAuditResult, parse_tier
from tiergate.runtime.json_io import dump_json_pretty
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.dispatcher import run_tier_audit, tier_summary
from tiergate.tooling.tier_policy import TierPolicy, load_tier_policy
from tiergate.tooling.tier_workflow import run_end_audit, run_start_audit

app = typer.Typer(add_completion=False, help="Tiered audit gate with autofix cascade.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _tier_arg(value: str) -> Tier:
    try:
        return parse_tier(value)
    except UnknownTierError as exc:
        choices = ", ".join(tier.value for tier in Tier)
        raise typer.BadParameter(f"{exc}; expected one of: {choices}") from exc


def _context(
    root: Path,
    config: Optional[Path],
    tier: Tier,
) -> tuple[WorkspaceRoot, TierGateSettings, TierPolicy]:
    workspace = WorkspaceRoot.from_path(root)
    settings = load_settings(root=workspace.path, config_path=config)
    try:
        policy = load_tier_policy(settings.policy_path)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"invalid tier policy: {exc}") from exc
    if tier not in policy.tiers:
        raise typer.BadParameter(f"tier policy defines no {tier.value} tier")
    return workspace, settings, policy


def _echo_audit(audit: TierAuditResult) -> None:
    typer.echo(f"{audit.tier.label} {audit.identifier}: {audit.overall_status.value.upper()}")
    typer.echo(tier_summary(audit))
    for result in audit.results:
        score = "-" if result.score is None else str(result.score)
        typer.echo(f"- {result.category}: {result.status.value} ({score}/100)")
    for error in audit.errors:
        typer.echo(f"error: {error}", err=True)
    if audit.report_path:
        typer.echo(f"Wrote audit report: {audit.report_path}")


def _exit_for(audit: TierAuditResult) -> None:
    if audit.overall_status is AuditStatus.FAIL:
        raise typer.Exit(code=1)


@app.command("audit")
def audit_command(
    tier: str = typer.Argument(..., help="feature, phase, session or task"),
    identifier: str = typer.Argument(...),
    feature: str = typer.Argument(...),
    changed_file: List[str] = typer.Option([], "--changed-file"),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    json_output: bool = typer.Option(False, "--json"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Run the tier's audits without storing a baseline or autofixing."""
    _configure_logging(verbose)
    resolved_tier = _tier_arg(tier)
    workspace, settings, policy = _context(root, config, resolved_tier)
    audit = run_tier_audit(
        resolved_tier,
        identifier,
        feature,
        changed_file or None,
        workspace=workspace,
        policy=policy,
        settings=settings,
    )
    if json_output:
        typer.echo(dump_json_pretty(audit.to_payload()))
    else:
        _echo_audit(audit)
    _exit_for(audit)


@app.command("start")
def start_command(
    tier: str = typer.Argument(..., help="feature, phase, session or task"),
    identifier: str = typer.Argument(...),
    feature: str = typer.Argument(...),
    changed_file: List[str] = typer.Option([], "--changed-file"),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    json_output: bool = typer.Option(False, "--json"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Audit at tier start and store the baseline scores."""
    _configure_logging(verbose)
    resolved_tier = _tier_arg(tier)
    workspace, settings, policy = _context(root, config, resolved_tier)
    outcome = run_start_audit(
        resolved_tier,
        identifier,
        feature,
        changed_file or None,
        workspace=workspace,
        settings=settings,
        policy=policy,
    )
    if json_output:
        typer.echo(dump_json_pretty(outcome.to_payload()))
    else:
        _echo_audit(outcome.audit)
        if outcome.baseline_path is not None:
            typer.echo(f"Stored baseline: {workspace.relative(outcome.baseline_path)}")
    _exit_for(outcome.audit)


@app.command("end")
def end_command(
    tier: str = typer.Argument(..., help="feature, phase, session or task"),
    identifier: str = typer.Argument(...),
    feature: str = typer.Argument(...),
    changed_file: List[str] = typer.Option([], "--changed-file"),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    commit: Optional[bool] = typer.Option(None, "--commit/--no-commit"),
    json_output: bool = typer.Option(False, "--json"),
    verbose: bool = typer.Option(False, "--verbose"),
) -> None:
    """Audit at tier end, autofix, compare against the baseline and report."""
    _configure_logging(verbose)
    resolved_tier = _tier_arg(tier)
    workspace, settings, policy = _context(root, config, resolved_tier)
    outcome = run_end_audit(
        resolved_tier,
        identifier,
        feature,
        changed_file or None,
        workspace=workspace,
        settings=settings,
        policy=policy,
        commit=commit,
    )
    if json_output:
        typer.echo(dump_json_pretty(outcome.to_payload()))
    else:
        _echo_audit(outcome.audit)
        for comparison in outcome.comparisons:
            delta = "" if comparison.delta is None else f" ({comparison.delta:+d})"
            typer.echo(f"  {comparison.category}: {comparison.status.value}{delta}")
        if outcome.autofix is not None:
            typer.echo(outcome.autofix.summary)
        if outcome.commit is not None:
            typer.echo(outcome.commit.message)
    _exit_for(outcome.audit)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
