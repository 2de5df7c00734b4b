from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from importlib import import_module
from pathlib import Path
from typing import Mapping

from tiergate.models import Tier, parse_tier
from tiergate.tooling.scoring import DEFAULT_WEIGHTS, PenaltyWeights

DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[1] / "policy" / "tier_audits.yaml"


def _load_yaml_module(*, importer=import_module):
    try:
        module = importer("yaml")
    except ImportError as exc:
        raise RuntimeError(
            "PyYAML is required to read the tier audit policy; install tiergate with its dependencies."
        ) from exc
    return module


yaml = _load_yaml_module()


@dataclass(frozen=True)
class AuditSpec:
    category: str
    artifact: str


@dataclass(frozen=True)
class ScoreSource:
    category: str
    artifact: str
    key_path: tuple[str, ...]


@dataclass(frozen=True)
class TierAuditConfig:
    tier: Tier
    scanner_command: str
    scanner_cwd: str
    report_dir: str
    changed_only: bool
    changed_only_args: tuple[str, ...]
    max_cascade_depth: int
    audits: tuple[AuditSpec, ...]
    score_sources: tuple[ScoreSource, ...] = ()

    def categories(self) -> tuple[str, ...]:
        return tuple(audit.category for audit in self.audits)


@dataclass(frozen=True)
class TierPolicy:
    tiers: Mapping[Tier, TierAuditConfig]
    default_penalties: PenaltyWeights = DEFAULT_WEIGHTS
    category_penalties: Mapping[str, PenaltyWeights] = field(default_factory=dict)

    def config_for(self, tier: Tier) -> TierAuditConfig:
        config = self.tiers.get(tier)
        if config is None:
            raise ValueError(f"tier policy missing tier: {tier.value}")
        return config

    def weights_for(self, category: str) -> PenaltyWeights:
        return self.category_penalties.get(category, self.default_penalties)


def _yaml_loader():
    class Loader(yaml.SafeLoader):
        pass

    for key, values in list(Loader.yaml_implicit_resolvers.items()):
        Loader.yaml_implicit_resolvers[key] = [
            (tag, regexp) for tag, regexp in values if tag != "tag:yaml.org,2002:bool"
        ]
    return Loader


def _as_int(raw: object, *, field_name: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"tier_audits invalid {field_name}: expected int") from exc


def _as_bool(raw: object, *, field_name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"tier_audits invalid {field_name}: expected bool")


def _as_text(raw: object, *, field_name: str) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"tier_audits invalid {field_name}: expected non-empty string")
    return raw.strip()


def _str_list(raw: object, *, field_name: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or any(not isinstance(item, str) for item in raw):
        raise ValueError(f"tier_audits invalid {field_name}: expected list[str]")
    return tuple(raw)


def _weights_from_mapping(
    raw: object,
    *,
    field_name: str,
    base: PenaltyWeights,
) -> PenaltyWeights:
    if not isinstance(raw, Mapping):
        raise ValueError(f"tier_audits invalid {field_name}: expected mapping")
    return PenaltyWeights(
        error=_as_int(raw.get("error", base.error), field_name=f"{field_name}.error"),
        warning=_as_int(raw.get("warning", base.warning), field_name=f"{field_name}.warning"),
        info=_as_int(raw.get("info", base.info), field_name=f"{field_name}.info"),
    )


def _audits_from_list(raw: object, *, field_name: str) -> tuple[AuditSpec, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValueError(f"tier_audits invalid {field_name}: expected non-empty list")
    audits: list[AuditSpec] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValueError(f"tier_audits invalid {field_name}[{index}]: expected mapping")
        audits.append(
            AuditSpec(
                category=_as_text(item.get("category"), field_name=f"{field_name}[{index}].category"),
                artifact=_as_text(item.get("artifact"), field_name=f"{field_name}[{index}].artifact"),
            )
        )
    return tuple(audits)


def _score_sources_from_list(raw: object, *, field_name: str) -> tuple[ScoreSource, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"tier_audits invalid {field_name}: expected list")
    sources: list[ScoreSource] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValueError(f"tier_audits invalid {field_name}[{index}]: expected mapping")
        key_path = _str_list(item.get("key_path"), field_name=f"{field_name}[{index}].key_path")
        if not key_path:
            raise ValueError(f"tier_audits invalid {field_name}[{index}].key_path: expected list[str]")
        sources.append(
            ScoreSource(
                category=_as_text(item.get("category"), field_name=f"{field_name}[{index}].category"),
                artifact=_as_text(item.get("artifact"), field_name=f"{field_name}[{index}].artifact"),
                key_path=key_path,
            )
        )
    return tuple(sources)


def _tier_from_mapping(tier: Tier, payload: Mapping[str, object]) -> TierAuditConfig:
    prefix = f"tiers.{tier.value}"
    max_depth = _as_int(payload.get("max_cascade_depth", 0), field_name=f"{prefix}.max_cascade_depth")
    if max_depth < 0:
        raise ValueError(f"tier_audits invalid {prefix}.max_cascade_depth: expected >= 0")
    return TierAuditConfig(
        tier=tier,
        scanner_command=_as_text(payload.get("scanner_command"), field_name=f"{prefix}.scanner_command"),
        scanner_cwd=str(payload.get("scanner_cwd", ".") or "."),
        report_dir=_as_text(payload.get("report_dir"), field_name=f"{prefix}.report_dir"),
        changed_only=_as_bool(payload.get("changed_only", False), field_name=f"{prefix}.changed_only"),
        changed_only_args=_str_list(payload.get("changed_only_args"), field_name=f"{prefix}.changed_only_args"),
        max_cascade_depth=max_depth,
        audits=_audits_from_list(payload.get("audits"), field_name=f"{prefix}.audits"),
        score_sources=_score_sources_from_list(
            payload.get("score_sources"),
            field_name=f"{prefix}.score_sources",
        ),
    )


def tier_policy_from_mapping(raw: Mapping[str, object]) -> TierPolicy:
    tiers_raw = raw.get("tiers")
    if not isinstance(tiers_raw, Mapping):
        raise ValueError("tier_audits must define tiers")

    default_penalties = DEFAULT_WEIGHTS
    if raw.get("default_penalties") is not None:
        default_penalties = _weights_from_mapping(
            raw.get("default_penalties"),
            field_name="default_penalties",
            base=DEFAULT_WEIGHTS,
        )

    category_penalties: dict[str, PenaltyWeights] = {}
    category_raw = raw.get("category_penalties")
    if isinstance(category_raw, Mapping):
        for category, weights_raw in category_raw.items():
            category_penalties[str(category)] = _weights_from_mapping(
                weights_raw,
                field_name=f"category_penalties.{category}",
                base=default_penalties,
            )

    tiers: dict[Tier, TierAuditConfig] = {}
    for tier_name, tier_payload in tiers_raw.items():
        tier = parse_tier(tier_name)
        if not isinstance(tier_payload, Mapping):
            raise ValueError(f"tier_audits invalid tiers.{tier.value}: expected mapping")
        tiers[tier] = _tier_from_mapping(tier, tier_payload)

    return TierPolicy(
        tiers=tiers,
        default_penalties=default_penalties,
        category_penalties=category_penalties,
    )


@lru_cache(maxsize=4)
def load_tier_policy(path: Path | None = None) -> TierPolicy:
    policy_path = DEFAULT_POLICY_PATH if path is None else path
    loader = _yaml_loader()
    with policy_path.open("r", encoding="utf-8") as handle:
        raw = yaml.load(handle, Loader=loader) or {}
    if not isinstance(raw, Mapping):
        raise ValueError("tier_audits root must be a mapping")
    return tier_policy_from_mapping(raw)
