from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

_LOG = logging.getLogger(__name__)

RunCommand = Callable[..., subprocess.CompletedProcess[str]]


@dataclass(frozen=True)
class CommandOutcome:
    command: str
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.error is None

    def describe(self) -> str:
        if self.timed_out:
            return "timed out"
        if self.error is not None:
            return self.error
        if self.returncode != 0:
            detail = self.stderr.strip() or self.stdout.strip()
            suffix = f": {detail.splitlines()[-1]}" if detail else ""
            return f"exit {self.returncode}{suffix}"
        return "ok"


def run_bounded(
    command: str | Sequence[str],
    *,
    cwd: Path,
    timeout_seconds: float,
    env: Mapping[str, str] | None = None,
    run_fn: RunCommand = subprocess.run,
) -> CommandOutcome:
    """Run an external command with a hard timeout; failures are returned, not raised."""
    shell = isinstance(command, str)
    command_text = command if shell else " ".join(command)
    merged_env = dict(os.environ)
    if env:
        merged_env.update(env)
    try:
        proc = run_fn(
            command,
            cwd=cwd,
            shell=shell,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            env=merged_env,
        )
    except subprocess.TimeoutExpired:
        _LOG.warning("command timed out after %ss: %s", timeout_seconds, command_text)
        return CommandOutcome(command=command_text, returncode=None, timed_out=True)
    except OSError as exc:
        _LOG.warning("command could not start: %s (%s)", command_text, exc)
        return CommandOutcome(command=command_text, returncode=None, error=str(exc))
    return CommandOutcome(
        command=command_text,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
