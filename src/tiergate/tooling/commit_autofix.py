from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

from tiergate.models import AutofixResult, Tier
from tiergate.runtime.process import RunCommand, run_bounded
from tiergate.runtime.workspace import WorkspaceRoot

_LOG = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class CommitOutcome:
    committed: bool
    success: bool
    message: str

    def to_payload(self) -> dict[str, object]:
        return {
            "committed": self.committed,
            "success": self.success,
            "message": self.message,
        }


def commit_message(tier: Tier, identifier: str) -> str:
    return f"{tier.label} {identifier}: Fix audit issues"


def commit_autofix_changes(
    tier: Tier,
    identifier: str,
    autofix: AutofixResult,
    *,
    workspace: WorkspaceRoot,
    run_fn: RunCommand = subprocess.run,
) -> CommitOutcome:
    """Stage and commit the working tree when autofix touched anything.

    Best effort: git failures are reported in the outcome, never raised.
    """
    if not autofix.has_changes():
        return CommitOutcome(False, True, "No audit fixes to commit (no changes from autofix)")

    status = run_bounded(
        ["git", "status", "--porcelain"],
        cwd=workspace.path,
        timeout_seconds=GIT_TIMEOUT_SECONDS,
        run_fn=run_fn,
    )
    if not status.ok:
        _LOG.warning("git status failed: %s", status.describe())
        return CommitOutcome(False, False, f"git status failed: {status.describe()}")
    if not status.stdout.strip():
        return CommitOutcome(False, True, "No audit fixes to commit (no uncommitted changes)")

    message = commit_message(tier, identifier)
    for command in (["git", "add", "-A"], ["git", "commit", "-m", message]):
        outcome = run_bounded(
            command,
            cwd=workspace.path,
            timeout_seconds=GIT_TIMEOUT_SECONDS,
            run_fn=run_fn,
        )
        if not outcome.ok:
            _LOG.warning("%s failed: %s", " ".join(command[:2]), outcome.describe())
            return CommitOutcome(
                False,
                False,
                f"Failed to commit audit fixes: {outcome.describe()}. You may need to commit manually.",
            )
    return CommitOutcome(True, True, f"Audit fixes committed: {message}")
