from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from tiergate.runtime.process import CommandOutcome, RunCommand, run_bounded
from tiergate.runtime.workspace import WorkspaceRoot
from tiergate.tooling.tier_policy import TierAuditConfig

_LOG = logging.getLogger(__name__)

CHANGED_FILES_ENV = "TIERGATE_CHANGED_FILES"


def scanner_command(config: TierAuditConfig, changed_files: Sequence[str] | None) -> str:
    command = config.scanner_command
    if config.changed_only and changed_files and config.changed_only_args:
        command = " ".join([command, *config.changed_only_args])
    return command


def invoke_scanner(
    config: TierAuditConfig,
    *,
    workspace: WorkspaceRoot,
    changed_files: Sequence[str] | None = None,
    timeout_seconds: float,
    run_fn: RunCommand = subprocess.run,
) -> CommandOutcome | None:
    """Run the tier's scanner once. Returns None when the scanner root is absent."""
    cwd = workspace.resolve(config.scanner_cwd)
    if not cwd.is_dir():
        _LOG.warning(
            "skipping %s scanner: working directory %s does not exist",
            config.tier.value,
            cwd,
        )
        return None
    env: dict[str, str] = {}
    if config.changed_only and changed_files:
        env[CHANGED_FILES_ENV] = "\n".join(changed_files)
    command = scanner_command(config, changed_files)
    _LOG.debug("running %s scanner: %s", config.tier.value, command)
    outcome = run_bounded(
        command,
        cwd=cwd,
        timeout_seconds=timeout_seconds,
        env=env,
        run_fn=run_fn,
    )
    if not outcome.ok:
        # Scanners exit non-zero when they find problems; artifacts are still read.
        _LOG.warning("%s scanner finished with %s", config.tier.value, outcome.describe())
    return outcome
