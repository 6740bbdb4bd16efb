"""
Weighted score aggregation across the three metric layers.
Layer1 carries 50%, Layer2 30%, Layer3 20%. Every intermediate average and the
final score are rounded half-up and clamped to [0, 100] independently.
"""

import math
from typing import Iterable, Union

from .models import CommunicativeMetrics, FormMetrics, PerformanceMetrics, Tier

LAYER1_WEIGHT = 0.5
LAYER2_WEIGHT = 0.3
LAYER3_WEIGHT = 0.2

TIER_ANCHORS = {
    Tier.HIGH: 90,
    Tier.MEDIUM: 65,
    Tier.LOW: 40,
}

Number = Union[int, float]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, .5 going up (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def clamp(value: Number, low: Number = 0, high: Number = 100) -> Number:
    return max(low, min(high, value))


def clamp_score(value: Number) -> int:
    """Clamp to [0, 100] and round half-up."""
    return clamp(round_half_up(value))


def _mean(values: Iterable[Number]) -> float:
    values = list(values)
    return sum(values) / len(values)


class ScoreAggregator:
    """Computes per-layer averages and the weighted overall score."""

    def layer1_average(self, layer1: PerformanceMetrics) -> int:
        return clamp_score(_mean((
            layer1.hierarchy_score,
            layer1.scanability_score,
            layer1.goal_clarity_score,
        )))

    def layer2_average(self, layer2: FormMetrics) -> int:
        return clamp_score(_mean((
            layer2.grid_consistency,
            layer2.visual_balance,
            layer2.color_harmony,
            layer2.typography_quality,
        )))

    def layer3_average(self, layer3: CommunicativeMetrics) -> int:
        return clamp_score(_mean((
            TIER_ANCHORS[Tier(layer3.trust_vibe)],
            TIER_ANCHORS[Tier(layer3.engagement_potential)],
        )))

    def overall_score(self, layer1: PerformanceMetrics, layer2: FormMetrics,
                      layer3: CommunicativeMetrics) -> int:
        weighted = (
            self.layer1_average(layer1) * LAYER1_WEIGHT
            + self.layer2_average(layer2) * LAYER2_WEIGHT
            + self.layer3_average(layer3) * LAYER3_WEIGHT
        )
        return clamp_score(weighted)
