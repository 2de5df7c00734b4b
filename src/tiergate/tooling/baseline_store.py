from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from tiergate.config import TierGateSettings
from tiergate.models import (
    BaselineSnapshot,
    Comparison,
    ComparisonStatus,
    Tier,
    parse_tier,
)
from tiergate.runtime.json_io import load_json_path, write_json
from tiergate.runtime.workspace import WorkspaceRoot

_LOG = logging.getLogger(__name__)

BASELINE_FORMAT_VERSION = 1


def audits_dir(workspace: WorkspaceRoot, settings: TierGateSettings, feature_name: str) -> Path:
    return workspace.resolve(settings.state_dir) / "features" / feature_name / "audits"


def baseline_file_name(tier: Tier, identifier: str) -> str:
    return f"{tier.value}-{identifier}-baseline.json"


def _snapshot_from_payload(payload: object) -> BaselineSnapshot | None:
    if not isinstance(payload, Mapping):
        return None
    scores_raw = payload.get("scores")
    if not isinstance(scores_raw, Mapping):
        return None
    scores: dict[str, int] = {}
    for category, value in scores_raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        scores[str(category)] = int(value)
    try:
        tier = parse_tier(payload.get("tier"))
    except ValueError:
        return None
    return BaselineSnapshot(
        tier=tier,
        identifier=str(payload.get("identifier", "")),
        feature_name=str(payload.get("feature_name", "")),
        timestamp=str(payload.get("timestamp", "")),
        scores=scores,
    )


class BaselineStore:
    """Start-of-tier score snapshots, one file per (tier, identifier, feature)."""

    def __init__(self, workspace: WorkspaceRoot, settings: TierGateSettings | None = None) -> None:
        self.workspace = workspace
        self.settings = settings if settings is not None else TierGateSettings()

    def path_for(self, tier: Tier, identifier: str, feature_name: str) -> Path:
        return (
            audits_dir(self.workspace, self.settings, feature_name)
            / "baselines"
            / baseline_file_name(tier, identifier)
        )

    def store(
        self,
        tier: Tier,
        identifier: str,
        feature_name: str,
        scores: Mapping[str, int],
        *,
        timestamp: str | None = None,
    ) -> Path | None:
        snapshot = BaselineSnapshot(
            tier=tier,
            identifier=identifier,
            feature_name=feature_name,
            timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
            scores=dict(scores),
        )
        path = self.path_for(tier, identifier, feature_name)
        payload = {"format_version": BASELINE_FORMAT_VERSION, **snapshot.to_payload()}
        try:
            if self.settings.keep_baseline_history and path.exists():
                self._archive(path)
            write_json(path, payload)
        except OSError as exc:
            _LOG.warning("could not write baseline %s: %s", path, exc)
            return None
        return path

    def _archive(self, path: Path) -> None:
        previous = _snapshot_from_payload(load_json_path(path))
        stamp = previous.timestamp if previous is not None else ""
        suffix = "".join(ch for ch in stamp if ch.isalnum()) or "previous"
        history_dir = path.parent / "history"
        history_dir.mkdir(parents=True, exist_ok=True)
        target = history_dir / f"{path.stem}-{suffix}.json"
        path.replace(target)

    def load(self, tier: Tier, identifier: str, feature_name: str) -> BaselineSnapshot | None:
        path = self.path_for(tier, identifier, feature_name)
        if not path.exists():
            return None
        snapshot = _snapshot_from_payload(load_json_path(path))
        if snapshot is None:
            _LOG.warning("ignoring unreadable baseline %s", path)
        return snapshot


def _status_for_delta(delta: int) -> ComparisonStatus:
    if delta > 0:
        return ComparisonStatus.IMPROVED
    if delta < 0:
        return ComparisonStatus.REGRESSED
    return ComparisonStatus.UNCHANGED


def compare_scores(
    baseline: BaselineSnapshot | None,
    end_scores: Mapping[str, int],
) -> list[Comparison]:
    if baseline is None:
        return [
            Comparison(category=category, status=ComparisonStatus.NEW, end_score=score)
            for category, score in end_scores.items()
        ]

    comparisons: list[Comparison] = []
    for category, start in baseline.scores.items():
        end = end_scores.get(category)
        if end is None:
            comparisons.append(
                Comparison(category=category, status=ComparisonStatus.MISSING, start_score=start)
            )
            continue
        delta = end - start
        comparisons.append(
            Comparison(
                category=category,
                status=_status_for_delta(delta),
                start_score=start,
                end_score=end,
                delta=delta,
            )
        )
    for category, end in end_scores.items():
        if category not in baseline.scores:
            comparisons.append(
                Comparison(category=category, status=ComparisonStatus.NEW, end_score=end)
            )
    return comparisons


def overall_delta(comparisons: list[Comparison]) -> int | None:
    deltas = [comparison.delta for comparison in comparisons if comparison.delta is not None]
    if not deltas:
        return None
    return sum(deltas)
