"""
FixScope rule engine.

The generative model proposes a fix scope, but the persisted value always comes
from the deterministic rule table below. Rules are evaluated strictly in order
and the first match wins:

1. hierarchy or goal clarity below critical  -> StructureRebuild
2. scanability below critical                -> StructureRebuild
3. hierarchy inside the ambiguous band       -> StructureRebuild
4. hierarchy solid but grid consistency low  -> DetailTuning
5. default                                   -> DetailTuning

Thresholds are configuration. The existence and order of the rules are not.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .models import FixScope, FormMetrics, PerformanceMetrics
from .scoring import ScoreAggregator
from dysapp.util.logging import logger


@dataclass(frozen=True)
class FixScopeThresholds:
    hierarchy_critical: int = 50
    goal_clarity_critical: int = 50
    scanability_critical: int = 50
    hierarchy_ambiguous_low: int = 50
    hierarchy_ambiguous_high: int = 60
    grid_consistency_low: int = 80


@dataclass(frozen=True)
class FixScopeRule:
    id: str
    fix_scope: FixScope
    predicate: Callable[[PerformanceMetrics, FormMetrics, FixScopeThresholds], bool]
    description: str


@dataclass(frozen=True)
class FixScopeDecision:
    """Outcome of reconciling the model's fix scope with the rule table."""
    fix_scope: FixScope
    overridden: bool
    rule: str
    model_fix_scope: FixScope
    reason: Optional[str] = None


@dataclass(frozen=True)
class DiagnosisDetails:
    layer1_average: int
    layer2_average: int
    critical_issues: List[str] = field(default_factory=list)
    recommendation: str = ""


RULES: Tuple[FixScopeRule, ...] = (
    FixScopeRule(
        id="critical_structure",
        fix_scope=FixScope.STRUCTURE_REBUILD,
        predicate=lambda l1, l2, t: (l1.hierarchy_score < t.hierarchy_critical
                                     or l1.goal_clarity_score < t.goal_clarity_critical),
        description="hierarchy or goal clarity critically low",
    ),
    FixScopeRule(
        id="scanability_failure",
        fix_scope=FixScope.STRUCTURE_REBUILD,
        predicate=lambda l1, l2, t: l1.scanability_score < t.scanability_critical,
        description="scanability critically low",
    ),
    FixScopeRule(
        id="ambiguous_hierarchy",
        fix_scope=FixScope.STRUCTURE_REBUILD,
        predicate=lambda l1, l2, t: (t.hierarchy_ambiguous_low <= l1.hierarchy_score
                                     < t.hierarchy_ambiguous_high),
        description="hierarchy in the ambiguous band",
    ),
    FixScopeRule(
        id="weak_grid",
        fix_scope=FixScope.DETAIL_TUNING,
        predicate=lambda l1, l2, t: (l1.hierarchy_score >= t.hierarchy_ambiguous_high
                                     and l2.grid_consistency < t.grid_consistency_low),
        description="structure solid, grid consistency low",
    ),
)

DEFAULT_RULE_ID = "default"

RECOMMENDATIONS = {
    FixScope.STRUCTURE_REBUILD: (
        "A structural redesign is needed. Re-establish the information hierarchy "
        "and visual flow before refining aesthetic details."
    ),
    FixScope.DETAIL_TUNING: (
        "The underlying structure is stable. Raise the finish by refining grid "
        "alignment, color harmony and typography."
    ),
}


class DecisionEngine:
    """Deterministic FixScope classifier with model reconciliation."""

    def __init__(self, thresholds: FixScopeThresholds = None):
        self.thresholds = thresholds or FixScopeThresholds()
        self._aggregator = ScoreAggregator()

    def evaluate(self, layer1: PerformanceMetrics, layer2: FormMetrics) -> Tuple[FixScope, str]:
        """Return the fix scope and the id of the rule that produced it."""
        for rule in RULES:
            if rule.predicate(layer1, layer2, self.thresholds):
                return rule.fix_scope, rule.id
        return FixScope.DETAIL_TUNING, DEFAULT_RULE_ID

    def decide(self, layer1: PerformanceMetrics, layer2: FormMetrics) -> FixScope:
        fix_scope, _ = self.evaluate(layer1, layer2)
        return fix_scope

    def validate_against_model(self, model_fix_scope: FixScope, layer1: PerformanceMetrics,
                               layer2: FormMetrics) -> FixScopeDecision:
        """
        Reconcile the model's fix scope with the rule table.

        Divergence is expected: the rule answer wins and the reason records both
        classifications together with the scores the rules read.
        """
        model_fix_scope = FixScope(model_fix_scope)
        rule_fix_scope, rule_id = self.evaluate(layer1, layer2)

        if rule_fix_scope == model_fix_scope:
            return FixScopeDecision(
                fix_scope=rule_fix_scope,
                overridden=False,
                rule=rule_id,
                model_fix_scope=model_fix_scope,
            )

        reason = (
            f"Model suggested {model_fix_scope.value}, but rule-based analysis requires "
            f"{rule_fix_scope.value} (rule: {rule_id}). "
            f"Hierarchy: {layer1.hierarchy_score}, Scanability: {layer1.scanability_score}, "
            f"Goal Clarity: {layer1.goal_clarity_score}, Grid Consistency: {layer2.grid_consistency}"
        )
        logger.log_fix_scope_override(model_fix_scope.value, rule_fix_scope.value, rule_id, reason)

        return FixScopeDecision(
            fix_scope=rule_fix_scope,
            overridden=True,
            rule=rule_id,
            model_fix_scope=model_fix_scope,
            reason=reason,
        )

    def generate_diagnosis_details(self, layer1: PerformanceMetrics, layer2: FormMetrics,
                                   fix_scope: FixScope) -> DiagnosisDetails:
        """Summarize the critical issues behind a decision."""
        t = self.thresholds
        issues = []

        if layer1.hierarchy_score < t.hierarchy_critical:
            issues.append(f"Hierarchy score critically low ({layer1.hierarchy_score})")
        if layer1.goal_clarity_score < t.goal_clarity_critical:
            issues.append(f"Goal clarity critically low ({layer1.goal_clarity_score})")
        if layer1.scanability_score < t.scanability_critical:
            issues.append(f"Scanability critically low ({layer1.scanability_score})")
        if has_severe_accessibility_issues(layer1):
            issues.append("Severe accessibility issues detected")
        if layer2.grid_consistency < t.grid_consistency_low:
            issues.append(f"Grid consistency needs improvement ({layer2.grid_consistency})")

        return DiagnosisDetails(
            layer1_average=self._aggregator.layer1_average(layer1),
            layer2_average=self._aggregator.layer2_average(layer2),
            critical_issues=issues,
            recommendation=RECOMMENDATIONS[FixScope(fix_scope)],
        )


def has_severe_accessibility_issues(layer1: PerformanceMetrics) -> bool:
    """Two or more accessibility flags set."""
    flags = layer1.accessibility
    return sum(bool(f) for f in (flags.low_contrast, flags.tiny_text, flags.cluttered)) >= 2
