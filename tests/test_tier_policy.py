from __future__ import annotations

from pathlib import Path

import pytest

from tiergate.models import Tier
from tiergate.tooling import tier_policy
from tiergate.tooling.scoring import PenaltyWeights


def test_bundled_policy_loads_every_tier() -> None:
    policy = tier_policy.load_tier_policy()
    assert set(policy.tiers) == set(Tier)
    for config in policy.tiers.values():
        assert config.audits
        assert config.scanner_command.startswith("npm run audit:tier-")


def test_bundled_policy_cascade_depths_and_changed_only() -> None:
    policy = tier_policy.load_tier_policy()
    assert policy.config_for(Tier.TASK).max_cascade_depth == 0
    assert policy.config_for(Tier.SESSION).max_cascade_depth == 1
    assert policy.config_for(Tier.TASK).changed_only is True
    assert policy.config_for(Tier.FEATURE).changed_only is False
    assert policy.config_for(Tier.SESSION).score_sources[0].key_path == ("summary", "score")


def test_category_penalties_override_error_weight() -> None:
    policy = tier_policy.load_tier_policy()
    assert policy.weights_for("component-health") == PenaltyWeights(error=30, warning=10, info=2)
    assert policy.weights_for("security") == PenaltyWeights()


def test_missing_tier_raises() -> None:
    policy = tier_policy.tier_policy_from_mapping(
        {
            "tiers": {
                "task": {
                    "scanner_command": "scan",
                    "report_dir": "out",
                    "audits": [{"category": "a", "artifact": "a.json"}],
                }
            }
        }
    )
    with pytest.raises(ValueError, match="missing tier"):
        policy.config_for(Tier.FEATURE)


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({}, "must define tiers"),
        ({"tiers": {"task": {"scanner_command": "scan", "report_dir": "out"}}}, "audits"),
        (
            {
                "tiers": {
                    "task": {
                        "scanner_command": "scan",
                        "report_dir": "out",
                        "max_cascade_depth": -1,
                        "audits": [{"category": "a", "artifact": "a.json"}],
                    }
                }
            },
            "max_cascade_depth",
        ),
        (
            {
                "tiers": {
                    "task": {
                        "scanner_command": "scan",
                        "report_dir": "out",
                        "changed_only": "maybe",
                        "audits": [{"category": "a", "artifact": "a.json"}],
                    }
                }
            },
            "changed_only",
        ),
    ],
)
def test_invalid_shapes_raise_value_error(payload, message) -> None:
    with pytest.raises(ValueError, match=message):
        tier_policy.tier_policy_from_mapping(payload)


def test_unknown_tier_name_raises(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text(
        "tiers:\n  epic:\n    scanner_command: scan\n    report_dir: out\n"
        "    audits:\n      - {category: a, artifact: a.json}\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="unknown tier"):
        tier_policy.load_tier_policy(path)


def test_yaml_on_off_words_stay_strings(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text(
        "tiers:\n  task:\n    scanner_command: scan\n    report_dir: out\n"
        "    changed_only: yes\n"
        "    audits:\n      - {category: on, artifact: on.json}\n",
        encoding="utf-8",
    )
    policy = tier_policy.load_tier_policy(path)
    config = policy.config_for(Tier.TASK)
    assert config.categories() == ("on",)
    assert config.changed_only is True


def test_missing_yaml_module_is_reported() -> None:
    def _importer(name: str):
        raise ImportError(name)

    with pytest.raises(RuntimeError, match="PyYAML"):
        tier_policy._load_yaml_module(importer=_importer)
