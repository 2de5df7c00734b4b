"""Ordered fix registries.

Script rules are checked before agent rules and the first match wins, so
reordering either tuple changes which fix a finding receives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Sequence

from tiergate.models import AutofixAction, Finding

DirectiveBuilder = Callable[[Finding], str]


@dataclass(frozen=True)
class ScriptFixRule:
    audit_name: str
    category_match: tuple[str, ...]
    finding_pattern: re.Pattern[str]
    # None runs the configured fix command.
    command: str | None = None
    action: AutofixAction = AutofixAction.SCRIPT

    def matches(self, category: str, finding: Finding) -> bool:
        return _matches(self.category_match, self.finding_pattern, category, finding)

    def affected_files(self, finding: Finding) -> tuple[str, ...]:
        return (finding.location,) if finding.location else ()


@dataclass(frozen=True)
class AgentFixRule:
    audit_name: str
    category_match: tuple[str, ...]
    finding_pattern: re.Pattern[str]
    directive: DirectiveBuilder
    action: AutofixAction = AutofixAction.AGENT

    def matches(self, category: str, finding: Finding) -> bool:
        return _matches(self.category_match, self.finding_pattern, category, finding)


def _matches(
    category_match: tuple[str, ...],
    pattern: re.Pattern[str],
    category: str,
    finding: Finding,
) -> bool:
    if category_match and category not in category_match:
        return False
    return pattern.search(finding.match_text) is not None


def _pattern(text: str) -> re.Pattern[str]:
    return re.compile(text, re.IGNORECASE)


def _at_location(template: str, fallback: str) -> DirectiveBuilder:
    def build(finding: Finding) -> str:
        return template.format(location=finding.location or fallback)

    return build


SCRIPT_FIX_RULES: tuple[ScriptFixRule, ...] = (
    ScriptFixRule(
        audit_name="naming-convention",
        category_match=("naming-convention",),
        finding_pattern=_pattern(r"naming convention findings?"),
    ),
    ScriptFixRule(
        audit_name="loop-mutations",
        category_match=("loop-mutations",),
        finding_pattern=_pattern(r"forEach→mutation|forEach.*mutation"),
    ),
    ScriptFixRule(
        audit_name="error-handling",
        category_match=("error-handling",),
        finding_pattern=_pattern(r"critical issue|warning.*defaults?.*fallback"),
    ),
)

_COMPLEXITY_PATTERN = r"high complexity|complexity scores?"

AGENT_FIX_RULES: tuple[AgentFixRule, ...] = (
    AgentFixRule(
        audit_name="component-logic",
        category_match=("component-logic",),
        finding_pattern=_pattern(_COMPLEXITY_PATTERN),
        directive=_at_location(
            "Extract complex logic from {location} into composables. "
            "Target: reduce complexity score below 20.",
            "affected file",
        ),
    ),
    AgentFixRule(
        audit_name="composables-logic",
        category_match=("composables-logic",),
        finding_pattern=_pattern(_COMPLEXITY_PATTERN),
        directive=_at_location(
            "Reduce composable complexity in {location}. "
            "Split or simplify to keep score below 20.",
            "affected file",
        ),
    ),
    AgentFixRule(
        audit_name="duplication",
        category_match=("duplication",),
        finding_pattern=_pattern(r"duplication group|consolidation leverage|DRY"),
        directive=_at_location(
            "Consolidate duplicated code identified in {location}. "
            "Create shared utility or composable.",
            "audit report",
        ),
    ),
    AgentFixRule(
        audit_name="hardcoding",
        category_match=("hardcoding",),
        finding_pattern=_pattern(r"hardcoding|config-driven"),
        directive=_at_location(
            "Move hardcoded patterns in {location} to config or constants.",
            "affected file",
        ),
    ),
    AgentFixRule(
        audit_name="unused-code",
        category_match=("unused-code",),
        finding_pattern=_pattern(r"unused code|P0/P1 unused"),
        directive=_at_location(
            "Remove or allowlist unused exports/functions in {location}. Verify before remove.",
            "affected file",
        ),
    ),
    AgentFixRule(
        audit_name="typecheck",
        category_match=("typecheck",),
        finding_pattern=_pattern(r"TypeScript error|P0 type error"),
        directive=_at_location(
            "Fix type errors reported in {location}. Address P0 pools first.",
            "typecheck-audit",
        ),
    ),
    AgentFixRule(
        audit_name="security",
        category_match=("security",),
        finding_pattern=_pattern(r"security error|CSRF|exposed secret"),
        directive=_at_location(
            "Remediate security issues in {location}. Do not ship with P0 security findings.",
            "security-audit",
        ),
    ),
    AgentFixRule(
        audit_name="test",
        category_match=("test",),
        finding_pattern=_pattern(r"untested source|P0/high-priority untested|test coverage"),
        directive=_at_location(
            "Add or update tests for high-priority untested files. See {location}.",
            "test-audit",
        ),
    ),
    AgentFixRule(
        audit_name="type-health",
        category_match=("type-health",),
        finding_pattern=_pattern(r"type health|nested utility|Record<string,\s*any>"),
        directive=_at_location(
            "Fix type health findings in {location}. Follow repair waves in "
            "type-health-audit.md: wave 1 for local fixes (nested utilities, "
            "Record<string,any>), wave 3 for multi-file planning.",
            "type-health-audit",
        ),
    ),
    AgentFixRule(
        audit_name="component-health",
        category_match=("component-health",),
        finding_pattern=_pattern(r"excessive prop|component.coupling|high-fan-in component"),
        directive=_at_location(
            "Address component health issues in {location}. Review "
            "component-health-audit.md for decomposition opportunities and "
            "coordinated refactors.",
            "component-health-audit",
        ),
    ),
    AgentFixRule(
        audit_name="composable-health",
        category_match=("composable-health",),
        finding_pattern=_pattern(r"missing explicit return type|high-fan-in composable"),
        directive=_at_location(
            "Fix composable health findings in {location}. Add explicit return "
            "types (wave 1) and plan high-fan-in refactors (wave 3) per "
            "composable-health-audit.md.",
            "composable-health-audit",
        ),
    ),
    AgentFixRule(
        audit_name="data-flow-health",
        category_match=("data-flow-health",),
        finding_pattern=_pattern(r"untyped inject|provide/inject|type boundary gap"),
        directive=_at_location(
            "Resolve data-flow health issues in {location}. Add types to untyped "
            "inject() calls, reduce provide/inject depth, and close type boundary "
            "gaps per data-flow-health-audit.md.",
            "data-flow-health-audit",
        ),
    ),
)


def match_script_rule(
    category: str,
    finding: Finding,
    rules: Sequence[ScriptFixRule] = SCRIPT_FIX_RULES,
) -> ScriptFixRule | None:
    for rule in rules:
        if rule.matches(category, finding):
            return rule
    return None


def match_agent_rule(
    category: str,
    finding: Finding,
    rules: Sequence[AgentFixRule] = AGENT_FIX_RULES,
) -> AgentFixRule | None:
    for rule in rules:
        if rule.matches(category, finding):
            return rule
    return None
