"""
Structural validation of generative model output.

The model is asked to honor a JSON schema but compliance is not guaranteed.
This module is the only code allowed to inspect a RawAnalysisResult; everything
downstream holds a ValidatedAnalysisResult.
"""

import math
import re
from typing import Any, List, Mapping

from .errors import UpstreamMalformedError
from .mapping import COLOR_ITEM, LIST_FIELDS, METRIC_GROUPS, GroupMapping
from .models import (
    EmotionalTone,
    FixScope,
    FormatPrediction,
    RawAnalysisResult,
    Tier,
    ValidatedAnalysisResult,
    enum_values,
)
from dysapp.util.logging import logger

REQUIRED_FIELDS = (
    "format_prediction",
    "layer1_performance",
    "layer2_form",
    "layer3_communicative",
    "overall_score",
    "fix_scope",
    "color_palette",
    "detected_keywords",
    "next_actions",
    "strengths",
    "weaknesses",
    "overall_analysis",
    "rag_search_queries",
)

HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

_ENUM_CHOICES = {
    "tier": enum_values(Tier),
    "tone": enum_values(EmotionalTone),
}


def is_number(value: Any) -> bool:
    """True for finite int/float values, excluding bool."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _check_leaf(kind: str, value: Any, path: str, errors: List[str]) -> None:
    if kind in ("score", "ratio"):
        if not is_number(value):
            errors.append(f"{path} must be a number")
    elif kind == "flag":
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
    elif kind in ("text", "optional_text"):
        if value is not None and not isinstance(value, str):
            errors.append(f"{path} must be a string")
    elif kind in _ENUM_CHOICES:
        if value not in _ENUM_CHOICES[kind]:
            errors.append(f"{path} must be one of {_ENUM_CHOICES[kind]}")
    elif kind == "hex":
        if not isinstance(value, str) or not HEX_PATTERN.match(value.strip()):
            errors.append(f"{path} must be a hex color")


def _check_group(group: GroupMapping, data: Any, path: str, errors: List[str]) -> None:
    if not isinstance(data, Mapping):
        errors.append(f"{path} must be an object")
        return
    for f in group.fields:
        _check_leaf(f.kind, data.get(f.model), f"{path}.{f.model}", errors)
    for child in group.children:
        _check_group(child, data.get(child.model), f"{path}.{child.model}", errors)


class ResponseValidator:
    """Fail-closed checks on a raw model payload."""

    def errors(self, raw: Any) -> List[str]:
        """Return every reason the payload is rejected, in check order."""
        payload = raw.payload if isinstance(raw, RawAnalysisResult) else raw

        if payload is None or not isinstance(payload, Mapping):
            return ["payload must be a non-null object"]

        missing = [name for name in REQUIRED_FIELDS if name not in payload]
        if missing:
            return [f"missing required field: {name}" for name in missing]

        errors = []
        score = payload["overall_score"]
        if not is_number(score) or score < 0 or score > 100:
            errors.append("overall_score must be a number in [0, 100]")

        if payload["format_prediction"] not in enum_values(FormatPrediction):
            errors.append("format_prediction is not a recognized format")

        if payload["fix_scope"] not in enum_values(FixScope):
            errors.append("fix_scope is not a recognized fix scope")

        if errors:
            return errors

        # Shape checks that make sanitization total
        for group in METRIC_GROUPS:
            _check_group(group, payload[group.model], group.model, errors)

        colors = payload[COLOR_ITEM.model]
        if not isinstance(colors, list):
            errors.append(f"{COLOR_ITEM.model} must be a list")
        else:
            for i, item in enumerate(colors):
                _check_group(COLOR_ITEM, item, f"{COLOR_ITEM.model}[{i}]", errors)

        for lst in LIST_FIELDS:
            if not isinstance(payload[lst.model], list):
                errors.append(f"{lst.model} must be a list")

        _check_leaf("text", payload["overall_analysis"], "overall_analysis", errors)
        _check_leaf("optional_text", payload.get("recognized_text"), "recognized_text", errors)

        return errors

    def validate(self, raw: Any) -> bool:
        """True only when every check passes. Never raises."""
        try:
            return not self.errors(raw)
        except Exception as e:
            logger.log_error("validation.unexpected", e)
            return False

    def validated(self, raw: Any) -> ValidatedAnalysisResult:
        """Convert raw output into the validated variant or raise UpstreamMalformedError."""
        payload = raw.payload if isinstance(raw, RawAnalysisResult) else raw
        try:
            reasons = self.errors(raw)
        except Exception as e:
            reasons = [f"validator failed: {type(e).__name__}"]

        if reasons:
            logger.log_upstream_rejection(reasons, payload)
            raise UpstreamMalformedError(
                "Generative response failed validation",
                details={"reasons": reasons[:10]},
            )

        return ValidatedAnalysisResult(payload=dict(payload))
