from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WorkspaceRoot:
    """Root of the project being audited.

    Every component resolves paths and runs commands relative to this value
    instead of reading the process working directory.
    """

    path: Path

    @classmethod
    def from_path(cls, path: Path | str | None = None) -> WorkspaceRoot:
        base = Path.cwd() if path is None else Path(path)
        return cls(path=base.resolve())

    def resolve(self, relative: Path | str) -> Path:
        candidate = Path(relative)
        if candidate.is_absolute():
            return candidate
        return self.path / candidate

    def relative(self, path: Path | str) -> str:
        candidate = Path(path)
        try:
            return candidate.relative_to(self.path).as_posix()
        except ValueError:
            return candidate.as_posix()
